"""DNA extract service: registering extracts and recording quantification."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labvault.core.exceptions import DuplicateIdentifier, NotFoundError
from labvault.database import Database
from labvault.models.enums import SampleStatus, TaskSampleProgress
from labvault.models.sample import Sample
from labvault.models.science import DnaExtract, Task
from labvault.schemas import Actor
from labvault.schemas.science import DnaExtractCreate, QuantificationUpdate
from labvault.services.audit import AuditService
from labvault.services.sample_lifecycle import load_samples_or_fail
from labvault.services.slot_registry import get_live_unit
from labvault.services.status_machine import assert_sample_transition
from labvault.services.task import get_task_for_update, unique_ids

logger = logging.getLogger(__name__)


class DnaExtractService:
    def __init__(self, database: Database):
        self.database = database

    async def create_dna_extract(self, data: DnaExtractCreate, actor: Actor) -> DnaExtract:
        """Register an extract; its barcode is its DNA id."""
        return await self.database.run_transaction(self._create_dna_extract, data, actor)

    async def _create_dna_extract(
        self, tx: AsyncSession, data: DnaExtractCreate, actor: Actor
    ) -> DnaExtract:
        if data.sample_id is not None and await tx.get(Sample, data.sample_id) is None:
            raise NotFoundError(
                "Sample",
                data.sample_id,
                message=f"Invalid source sample ID: {data.sample_id}",
            )
        if data.storage_location_id is not None:
            if await get_live_unit(tx, data.storage_location_id) is None:
                raise NotFoundError("Storage", data.storage_location_id)

        existing = await tx.execute(
            select(DnaExtract.id).where(DnaExtract.dna_id == data.dna_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateIdentifier("DNA extract", data.dna_id)

        extract = DnaExtract(
            id=uuid.uuid4(),
            **data.model_dump(),
            barcode=data.dna_id,
            created_by=actor.email,
            created_by_id=actor.id,
        )
        tx.add(extract)
        await tx.flush()

        await AuditService(tx).log_create(
            actor=actor,
            entity_type="dna_extract",
            entity_id=extract.id,
            details={
                "dna_id": extract.dna_id,
                "sample_id": str(data.sample_id) if data.sample_id else None,
            },
        )
        return extract

    async def save_quantification(
        self,
        task_id: uuid.UUID,
        updates: list[QuantificationUpdate],
        actor: Actor,
    ) -> list[DnaExtract]:
        """Record yields and purity ratios for a batch of extracts.

        Every source sample named in ``updates`` moves to extracted and is
        marked successful in the task's progress map.
        """
        return await self.database.run_transaction(
            self._save_quantification, task_id, updates, actor
        )

    async def _save_quantification(
        self,
        tx: AsyncSession,
        task_id: uuid.UUID,
        updates: list[QuantificationUpdate],
        actor: Actor,
    ) -> list[DnaExtract]:
        task: Task = await get_task_for_update(tx, task_id)

        extract_ids = unique_ids([u.id for u in updates])
        result = await tx.execute(
            select(DnaExtract).where(DnaExtract.id.in_(extract_ids)).with_for_update()
        )
        extracts = {e.id: e for e in result.scalars().all()}
        missing = [str(eid) for eid in extract_ids if eid not in extracts]
        if missing:
            raise NotFoundError(
                "DNA extract",
                missing,
                message=f"Invalid DNA extract IDs provided: {', '.join(missing)}",
            )

        sample_ids = unique_ids([u.sample_id for u in updates if u.sample_id is not None])
        samples = await load_samples_or_fail(tx, sample_ids)
        for sample in samples:
            assert_sample_transition(sample.status, SampleStatus.EXTRACTED)

        audit = AuditService(tx)
        for update in updates:
            extract = extracts[update.id]
            extract.yield_ng_per_ul = update.yield_ng_per_ul
            extract.a260_a280 = update.a260_a280
            await audit.log_update(
                actor=actor,
                entity_type="dna_extract",
                entity_id=extract.id,
                details={
                    "dna_id": update.dna_id,
                    "task_id": str(task_id),
                    "yield_ng_per_ul": str(update.yield_ng_per_ul)
                    if update.yield_ng_per_ul is not None else None,
                    "a260_a280": str(update.a260_a280)
                    if update.a260_a280 is not None else None,
                },
            )

        if samples:
            for sample in samples:
                sample.status = SampleStatus.EXTRACTED
                sample.updated_by = actor.id
            task.sample_progress = {
                **task.sample_progress,
                **{str(s.id): TaskSampleProgress.SUCCESSFUL.value for s in samples},
            }

        await tx.flush()
        return [extracts[eid] for eid in extract_ids]
