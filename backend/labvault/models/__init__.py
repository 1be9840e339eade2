"""All LabVault database models.

Import all models here so Alembic and SQLAlchemy can discover them.
"""

from labvault.models.base import Base, BaseModel, BaseModelNoSoftDelete  # noqa: F401

# Audit
from labvault.models.audit import AuditLog  # noqa: F401

# Storage
from labvault.models.storage import StorageSlot, StorageUnit  # noqa: F401

# Samples
from labvault.models.sample import Sample  # noqa: F401

# Tasks, experiments, DNA extracts
from labvault.models.science import DnaExtract, Experiment, Task  # noqa: F401
