from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authcore.api.errors import register_exception_handlers
from authcore.api.routers import auth, cli, oauth, payments, users
from authcore.application.use_cases.cleanup_oauth_states import CleanupExpiredOAuthStatesUseCase
from authcore.infrastructure.db.engine import get_engine
from authcore.infrastructure.db.repositories.oauth_state_repository import SqlOAuthStateRepository
from authcore.infrastructure.db.schema import create_schema
from authcore.shared.config import get_settings
from authcore.shared.logging import configure_logging


settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_url:
        engine = get_engine(settings.database_url)
        create_schema(engine)
        # States abandoned while the service was down.
        CleanupExpiredOAuthStatesUseCase(oauth_state_port=SqlOAuthStateRepository(engine)).execute()
    else:
        logger.warning("main: startup database_url_missing")
    yield


app = FastAPI(title="authcore", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins) or ["*"],
    allow_credentials=bool(settings.cors_allow_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(oauth.router)
app.include_router(users.router)
app.include_router(cli.router)
app.include_router(payments.router)


@app.get("/health")
def health():
    return {"status": "ok"}
