# File: backend/app/main.py
# Version: v0.5.0
"""
FastAPI app entry.

- Keeps route assembly in backend/app/api/v1/api.py.
- Mounts /api/* via `api_router` and the self-prefixed v1 routers
  (/api/v1/primers, /api/v1/assembly).
- Maps engine exceptions to HTTP codes (api/v1/errors.py).
- Logging level from settings.LOG_LEVEL; tables created in the lifespan hook.

Run: uvicorn backend.app.main:app --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api.v1.api import api_router, v1_routers
from backend.app.api.v1.errors import install_error_handlers
from backend.app.core.config import settings
from backend.app.db.session import init_db

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    version=settings.APP_VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_error_handlers(app)

for router in v1_routers:
    app.include_router(router)

app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.app.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL)
