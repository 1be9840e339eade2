"""All enum types for the LabVault data model."""

import enum


# --- Audit ---

class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    MOVE = "MOVE"
    IMPORT = "IMPORT"


# --- Sample Enums ---

class SampleType(str, enum.Enum):
    BLOOD = "blood"
    TISSUE = "tissue"
    HAIR = "hair"
    DNA = "dna"
    OTHER = "other"


class SampleStatus(str, enum.Enum):
    RECEIVED = "received"
    IN_STORAGE = "in_storage"
    PROCESSING = "processing"
    EXTRACTED = "extracted"
    USED = "used"
    DISPOSED = "disposed"
    FAILED = "failed"


# --- Storage Enums ---

class CapacityMode(str, enum.Enum):
    GRID = "grid"
    FLAT = "flat"
    CUSTOM = "custom"


class GridLabelSchema(str, enum.Enum):
    ALPHA_NUMERIC = "alpha-numeric"
    NUMERIC = "numeric"
    CUSTOM = "custom"


# --- Task Enums ---

class TaskStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class TaskType(str, enum.Enum):
    DNA_EXTRACTION = "DNA Extraction"
    PCR = "PCR"
    SAMPLE_RECEPTION = "Sample Reception"
    ANALYSIS = "Analysis"


class TaskPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class TaskSampleProgress(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"
    EXTRACTED = "extracted"


# --- Experiment Enums ---

class ExperimentStatus(str, enum.Enum):
    PLANNED = "planned"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ExperimentType(str, enum.Enum):
    DNA_EXTRACTION = "DNA extraction"
    PCR = "PCR"
    ELECTROPHORESIS = "Electrophoresis"
    SEQUENCING = "Sequencing"


# --- DNA Extract Enums ---

class DnaExtractStatus(str, enum.Enum):
    STORED = "stored"
    USED = "used"
    DISPOSED = "disposed"
