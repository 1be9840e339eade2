"""FastAPI dependencies: database handle, services, and acting identity."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from labvault.database import Database
from labvault.schemas import Actor
from labvault.services.dna_extract import DnaExtractService
from labvault.services.experiment import ExperimentService
from labvault.services.sample_lifecycle import SampleLifecycleService
from labvault.services.storage import StorageService
from labvault.services.task import TaskService


def get_database(request: Request) -> Database:
    """The ``Database`` built by the app lifespan (or installed by a test)."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not initialised.",
        )
    return database


DatabaseDep = Annotated[Database, Depends(get_database)]


async def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_email: Annotated[str | None, Header()] = None,
) -> Actor:
    """Identity of the caller, asserted by the authenticating proxy in front."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required.",
        )
    return Actor(id=x_actor_id, email=x_actor_email)


ActorDep = Annotated[Actor, Depends(get_actor)]


def get_sample_service(database: DatabaseDep) -> SampleLifecycleService:
    return SampleLifecycleService(database)


def get_storage_service(database: DatabaseDep) -> StorageService:
    return StorageService(database)


def get_task_service(database: DatabaseDep) -> TaskService:
    return TaskService(database)


def get_experiment_service(database: DatabaseDep) -> ExperimentService:
    return ExperimentService(database)


def get_dna_extract_service(database: DatabaseDep) -> DnaExtractService:
    return DnaExtractService(database)
