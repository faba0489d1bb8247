# File: backend/app/api/v1/errors.py
# Version: v0.1.0
"""
Engine exception -> HTTP status mapping.

- InvalidInput               -> 400 (caller can fix the request)
- DidNotConverge             -> 422
- ParameterTableIncomplete,
  InvalidScore               -> 500 (broken data/build; never a partial answer)

Infeasible optimizer searches never reach here: they come back as a
flagged partial result.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.core.errors import DidNotConverge, InvalidInput, InvalidScore, ParameterTableIncomplete

logger = logging.getLogger(__name__)


def _payload(kind: str, exc: Exception) -> dict:
    return {"detail": str(exc), "error": kind}


async def _invalid_input(request: Request, exc: InvalidInput) -> JSONResponse:
    return JSONResponse(status_code=400, content=_payload("InvalidInput", exc))


async def _did_not_converge(request: Request, exc: DidNotConverge) -> JSONResponse:
    logger.warning("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=422, content=_payload("DidNotConverge", exc))


async def _fatal(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content=_payload(type(exc).__name__, exc))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidInput, _invalid_input)
    app.add_exception_handler(DidNotConverge, _did_not_converge)
    app.add_exception_handler(ParameterTableIncomplete, _fatal)
    app.add_exception_handler(InvalidScore, _fatal)
