# File: backend/app/api/v1/api.py
# Version: v0.8.0
"""
v1 API aggregator.

Routers included under /api via `api_router`:
- health                    -> /api/health
- secondary_structure       -> /api/v1/analysis/*

Routers that carry their own absolute prefix are collected in `v1_routers`:
- primers                   -> /api/v1/primers/*
- assembly                  -> /api/v1/assembly/*
"""
from __future__ import annotations

from fastapi import APIRouter

from . import health as health_router
from . import secondary_structure as analysis_router
from .assembly.router import router as assembly_router
from .primers.router import router as primers_router

api_router = APIRouter()
api_router.include_router(health_router.router)
api_router.include_router(analysis_router.router)

v1_routers = (primers_router, assembly_router)
