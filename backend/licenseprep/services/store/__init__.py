from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.sql import SQLContentStore
from licenseprep.services.store.vector_index import ChromaVectorIndex

__all__ = [
    "ContentStore",
    "SQLContentStore",
    "ChromaVectorIndex",
]
