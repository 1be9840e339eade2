"""Experiment service."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labvault.core.exceptions import NotFoundError
from labvault.database import Database
from labvault.models.enums import ExperimentStatus
from labvault.models.science import Experiment, Task
from labvault.schemas import Actor
from labvault.schemas.science import ExperimentCreate
from labvault.services.audit import AuditService
from labvault.services.sample_lifecycle import load_samples_or_fail
from labvault.services.status_machine import assert_experiment_transition
from labvault.services.task import generate_code, unique_ids

logger = logging.getLogger(__name__)


class ExperimentService:
    def __init__(self, database: Database):
        self.database = database

    async def create_experiment(self, data: ExperimentCreate, actor: Actor) -> Experiment:
        return await self.database.run_transaction(self._create_experiment, data, actor)

    async def _create_experiment(
        self, tx: AsyncSession, data: ExperimentCreate, actor: Actor
    ) -> Experiment:
        sample_ids = unique_ids(data.sample_ids)
        await load_samples_or_fail(tx, sample_ids)

        if data.task_id is not None and await tx.get(Task, data.task_id) is None:
            raise NotFoundError("Task", data.task_id)

        experiment = Experiment(
            id=uuid.uuid4(),
            experiment_code=generate_code("EXP"),
            title=data.title,
            experiment_type=data.experiment_type,
            protocol_id=data.protocol_id,
            project_id=data.project_id,
            start_time=data.start_time,
            end_time=data.end_time,
            status=data.status,
            sample_ids=[str(sid) for sid in sample_ids],
            task_id=data.task_id,
            created_by=actor.email,
            created_by_id=actor.id,
        )
        tx.add(experiment)
        await tx.flush()

        await AuditService(tx).log_create(
            actor=actor,
            entity_type="experiment",
            entity_id=experiment.id,
            details={"experiment_code": experiment.experiment_code, "title": data.title},
        )
        return experiment

    async def update_experiment_status(
        self, experiment_id: uuid.UUID, status: ExperimentStatus, actor: Actor
    ) -> Experiment:
        return await self.database.run_transaction(
            self._update_experiment_status, experiment_id, status, actor
        )

    async def _update_experiment_status(
        self,
        tx: AsyncSession,
        experiment_id: uuid.UUID,
        status: ExperimentStatus,
        actor: Actor,
    ) -> Experiment:
        result = await tx.execute(
            select(Experiment).where(Experiment.id == experiment_id).with_for_update()
        )
        experiment = result.scalar_one_or_none()
        if experiment is None:
            raise NotFoundError("Experiment", experiment_id)

        assert_experiment_transition(experiment.status, status)
        if experiment.status == status:
            return experiment

        old_status = experiment.status
        experiment.status = status
        await tx.flush()
        await AuditService(tx).log_update(
            actor=actor,
            entity_type="experiment",
            entity_id=experiment_id,
            details={"status": {"from": old_status.value, "to": status.value}},
        )
        return experiment
