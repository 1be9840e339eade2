"""Capacity and hierarchy-path arithmetic for storage units.

Pure functions over unit definitions; nothing here touches the database.
Grid definitions and overrides may be passed either as schema objects or as
the raw JSON dicts stored on ``StorageUnit``.
"""

import string
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from labvault.models.enums import CapacityMode, GridLabelSchema
from labvault.schemas.storage import (
    CapacitySnapshot,
    GridSpec,
    StoragePath,
    StorageUnitOverrides,
)

ROW_LABELS = string.ascii_uppercase
PATH_SEPARATOR = " / "


# ── Labels ────────────────────────────────────────────────────────────

def build_row_label(row_index: int) -> str:
    """Spreadsheet-style row label: 0 -> A, 25 -> Z, 26 -> AA, 27 -> AB."""
    if row_index < len(ROW_LABELS):
        return ROW_LABELS[row_index]
    label = ""
    index = row_index
    while index >= 0:
        label = ROW_LABELS[index % 26] + label
        index = index // 26 - 1
    return label


def grid_coordinate_label(
    row_index: int, col_index: int, schema: GridLabelSchema | str | None
) -> str:
    column = col_index + 1
    if schema == GridLabelSchema.NUMERIC:
        return f"{row_index + 1}-{column}"
    if schema == GridLabelSchema.CUSTOM:
        return f"R{row_index + 1}C{column}"
    return f"{build_row_label(row_index)}{column}"


def iter_grid_labels(grid_spec: GridSpec | Mapping[str, Any]) -> Iterator[str]:
    spec = _as_grid_spec(grid_spec)
    for row in range(max(spec.rows, 0)):
        for col in range(max(spec.cols, 0)):
            yield grid_coordinate_label(row, col, spec.label_schema)


def normalize_occupied_slots(
    source: Iterable[str] | Mapping[str, Any] | None,
) -> list[str]:
    """Occupied labels from either a label iterable or a ``{label: ...}`` map."""
    if not source:
        return []
    if isinstance(source, Mapping):
        return list(source.keys())
    return [label for label in source if isinstance(label, str)]


# ── Capacity ──────────────────────────────────────────────────────────

def compute_grid_capacity_snapshot(
    grid_spec: GridSpec | Mapping[str, Any] | None,
    overrides: StorageUnitOverrides | Mapping[str, Any] | None = None,
    occupied_slots: Iterable[str] | Mapping[str, Any] | None = None,
) -> CapacitySnapshot | None:
    """Theoretical, effective, occupied, and available slot counts of a grid.

    Returns ``None`` for a missing grid or one with no rows or columns.
    ``occupied``/``available`` are ``None`` when no occupancy is supplied.
    When any slot is explicitly enabled, the enabled set (less disabled slots)
    is the whole usable universe.
    """
    if grid_spec is None:
        return None
    spec = _as_grid_spec(grid_spec)
    if spec.rows <= 0 or spec.cols <= 0:
        return None
    unit_overrides = _as_overrides(overrides)

    theoretical = spec.rows * spec.cols
    disabled = set(spec.disabled_slots) | set(unit_overrides.grid_disabled_slots)
    enabled = set(spec.enabled_slots) | set(unit_overrides.grid_enabled_slots)

    universe: set[str] | None = None
    if enabled:
        universe = enabled - disabled
        effective = len(universe)
    else:
        effective = max(theoretical - len(disabled), 0)

    occupied = None
    available = None
    if occupied_slots is not None:
        labels = normalize_occupied_slots(occupied_slots)
        if universe is not None:
            occupied = sum(1 for label in labels if label in universe)
        else:
            occupied = sum(1 for label in labels if label not in disabled)
        available = max(effective - occupied, 0)

    return CapacitySnapshot(
        theoretical=theoretical,
        effective=effective,
        occupied=occupied,
        available=available,
    )


def derive_capacity_snapshot(
    unit: Any, occupied_slots: Iterable[str] | Mapping[str, Any] | None = None
) -> CapacitySnapshot | None:
    """Capacity of a storage unit in whichever mode it is defined.

    Flat and custom units report their declared size against ``sample_count``.
    Grid units use the observed occupancy, falling back to the legacy inline
    ``occupied_slots`` map.
    """
    if unit.capacity_mode != CapacityMode.GRID and unit.capacity_slots is not None:
        count = unit.sample_count
        return CapacitySnapshot(
            theoretical=unit.capacity_slots,
            effective=unit.capacity_slots,
            occupied=count,
            available=max(unit.capacity_slots - count, 0) if count is not None else None,
        )

    if occupied_slots is None and unit.occupied_slots:
        occupied_slots = unit.occupied_slots
    return compute_grid_capacity_snapshot(unit.grid_spec, unit.overrides, occupied_slots)


# ── Hierarchy paths ───────────────────────────────────────────────────

def build_path_from_ancestors(
    unit: Any, lookup: Mapping[str, Any] | None = None
) -> StoragePath:
    """Materialize a unit's root-to-self path.

    ``lookup`` maps ancestor ids to units and is only consulted when the unit
    carries no stored ``path_names``; ancestors it cannot resolve are skipped.
    """
    own_id = str(unit.id)
    path_ids = [str(i) for i in (unit.path_ids or unit.ancestors or [])] + [own_id]

    if unit.path_names:
        path_names = list(unit.path_names)
    elif lookup and unit.ancestors:
        path_names = [
            lookup[str(a)].name
            for a in unit.ancestors
            if str(a) in lookup and lookup[str(a)].name
        ]
        path_names.append(unit.name)
    else:
        path_names = [unit.name]

    return StoragePath(
        path_ids=path_ids,
        path_names=path_names,
        full_path=PATH_SEPARATOR.join(path_names),
        depth=max(len(path_ids) - 1, 0),
    )


def _as_grid_spec(value: GridSpec | Mapping[str, Any]) -> GridSpec:
    if isinstance(value, GridSpec):
        return value
    return GridSpec.model_validate(dict(value))


def _as_overrides(
    value: StorageUnitOverrides | Mapping[str, Any] | None,
) -> StorageUnitOverrides:
    if value is None:
        return StorageUnitOverrides()
    if isinstance(value, StorageUnitOverrides):
        return value
    return StorageUnitOverrides.model_validate(dict(value))
