"""API v1 router that aggregates all sub-routers."""

from fastapi import APIRouter

from labvault.api.v1.dna_extracts import router as dna_extracts_router
from labvault.api.v1.experiments import router as experiments_router
from labvault.api.v1.samples import router as samples_router
from labvault.api.v1.storage import router as storage_router
from labvault.api.v1.tasks import router as tasks_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(samples_router)
api_router.include_router(storage_router)
api_router.include_router(tasks_router)
api_router.include_router(experiments_router)
api_router.include_router(dna_extracts_router)
