"""Domain errors raised by the storage and sample services.

Every error aborts the enclosing transaction; nothing is partially committed.
The HTTP layer maps ``status_code``/``code`` onto the error envelope.
"""

from fastapi import status


class LabVaultError(Exception):
    """Base class for business-rule violations."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(LabVaultError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(
        self, entity: str, entity_id: object, message: str | None = None
    ) -> None:
        super().__init__(message or f"{entity} {entity_id} does not exist.")
        self.entity = entity
        self.entity_id = entity_id


class UniquenessViolation(LabVaultError):
    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE_BARCODE"

    def __init__(self, barcode: str) -> None:
        super().__init__(f"Barcode {barcode} already exists.")
        self.barcode = barcode


class SlotConflict(LabVaultError):
    status_code = status.HTTP_409_CONFLICT
    code = "SLOT_CONFLICT"

    def __init__(self, storage_id: object, slot_label: str) -> None:
        super().__init__(
            f"Slot {slot_label} in storage {storage_id} is already occupied."
        )
        self.storage_id = storage_id
        self.slot_label = slot_label


class BatchSizeExceeded(LabVaultError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    code = "BATCH_TOO_LARGE"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Batch size {size} is too large for an atomic import. Limit is {limit}."
        )
        self.size = size
        self.limit = limit


class InvalidTransition(LabVaultError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_TRANSITION"

    def __init__(self, machine: str, current: str, requested: str) -> None:
        super().__init__(
            f"Invalid {machine} status transition from '{current}' to '{requested}'."
        )
        self.machine = machine
        self.current = current
        self.requested = requested


class TransactionConflict(LabVaultError):
    """Concurrent writers kept colliding until every retry was used up."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "TRANSACTION_CONFLICT"

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Transaction aborted after {attempts} conflicting attempts. Please retry."
        )
        self.attempts = attempts


class DuplicateIdentifier(LabVaultError):
    """A human-facing code (storage id, DNA id) is already taken."""

    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE_ID"

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity} {identifier} already exists.")
        self.entity = entity
        self.identifier = identifier
