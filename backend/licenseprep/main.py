import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from licenseprep.core.config import Settings, get_settings
from licenseprep.core.database import create_engine, create_session_factory
from licenseprep.core.logging import configure_logging
from licenseprep.deps import Services, build_services
from licenseprep.routers import challenges, chat, handouts, questions
from licenseprep.services.store.sql import SQLContentStore
from licenseprep.services.store.vector_index import ChromaVectorIndex

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the API. When ``services`` is given it is used as-is and no
    database or vector store is opened.
    """
    settings = settings or (services.settings if services else get_settings())
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            app.state.services = services
            yield
            return

        # Startup: storage, vector index and providers
        os.makedirs(settings.upload_dir, exist_ok=True)
        engine = create_engine(settings.database_url)
        store = SQLContentStore(
            create_session_factory(engine),
            ChromaVectorIndex(settings.chroma_persist_dir, settings.chroma_collection),
        )
        app.state.services = build_services(settings, store)
        logger.info("[App] Services ready (llm=%s)", settings.llm_model)
        yield
        # Shutdown
        await engine.dispose()

    app = FastAPI(
        title="License Prep API",
        description="Handout pipeline, study chat and daily challenges for contractor license exams",
        version="1.0.0",
        lifespan=lifespan,
    )
    # Avoid 307 redirects for trailing slash behind a proxy
    app.router.redirect_slashes = False

    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(handouts.router, prefix="/handouts", tags=["Handouts"])
    app.include_router(chat.router, prefix="/chat", tags=["Chat"])
    app.include_router(challenges.router, prefix="/challenges", tags=["Challenges"])
    app.include_router(questions.router, prefix="/questions", tags=["Questions"])

    @app.get("/health")
    async def health_check():
        current = getattr(app.state, "services", None)
        return {
            "status": "healthy",
            "llm": bool(current and current.llm),
            "embeddings": bool(current and current.embedder.provider),
        }

    return app


app = create_app()
