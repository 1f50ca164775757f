from contextlib import contextmanager

from fastapi import HTTPException, status

from licenseprep.core.errors import (
    ConfigurationError,
    InvalidInputError,
    NotFoundError,
    StructuredOutputError,
    UpstreamError,
)


@contextmanager
def domain_errors():
    """Translate domain errors raised inside the block into HTTP errors."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    except (UpstreamError, StructuredOutputError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
