"""Grid capacity and hierarchy path arithmetic."""

import uuid
from types import SimpleNamespace

from labvault.models.enums import CapacityMode, GridLabelSchema
from labvault.schemas.storage import GridSpec, StorageUnitOverrides
from labvault.services.capacity import (
    build_path_from_ancestors,
    build_row_label,
    compute_grid_capacity_snapshot,
    derive_capacity_snapshot,
    grid_coordinate_label,
    iter_grid_labels,
    normalize_occupied_slots,
)


def _unit(**fields):
    defaults = {
        "id": uuid.uuid4(),
        "name": "Unit",
        "ancestors": [],
        "path_ids": None,
        "path_names": None,
        "capacity_mode": CapacityMode.GRID,
        "capacity_slots": None,
        "grid_spec": None,
        "overrides": None,
        "sample_count": 0,
        "occupied_slots": None,
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


class TestLabels:
    def test_row_labels(self):
        assert build_row_label(0) == "A"
        assert build_row_label(25) == "Z"
        assert build_row_label(26) == "AA"
        assert build_row_label(27) == "AB"
        assert build_row_label(51) == "AZ"
        assert build_row_label(52) == "BA"
        assert build_row_label(701) == "ZZ"
        assert build_row_label(702) == "AAA"

    def test_coordinate_schemas(self):
        assert grid_coordinate_label(0, 0, GridLabelSchema.ALPHA_NUMERIC) == "A1"
        assert grid_coordinate_label(7, 11, GridLabelSchema.ALPHA_NUMERIC) == "H12"
        assert grid_coordinate_label(0, 0, GridLabelSchema.NUMERIC) == "1-1"
        assert grid_coordinate_label(2, 4, "numeric") == "3-5"
        assert grid_coordinate_label(2, 4, GridLabelSchema.CUSTOM) == "R3C5"
        assert grid_coordinate_label(1, 1, None) == "B2"

    def test_iter_grid_labels_is_row_major(self):
        labels = list(iter_grid_labels({"rows": 2, "cols": 3}))
        assert labels == ["A1", "A2", "A3", "B1", "B2", "B3"]

    def test_normalize_occupied_slots(self):
        assert normalize_occupied_slots(None) == []
        assert normalize_occupied_slots({"A1": "s1", "B2": "s2"}) == ["A1", "B2"]
        assert normalize_occupied_slots(["A1", 3, "C3"]) == ["A1", "C3"]
        assert sorted(normalize_occupied_slots({"A1", "A2"})) == ["A1", "A2"]


class TestGridCapacity:
    def test_disabled_slots_and_occupancy(self):
        spec = GridSpec(rows=8, cols=12, disabled_slots=["A1", "H12"])
        occupied = [f"B{i}" for i in range(1, 11)]

        snapshot = compute_grid_capacity_snapshot(spec, occupied_slots=occupied)

        assert snapshot.theoretical == 96
        assert snapshot.effective == 94
        assert snapshot.occupied == 10
        assert snapshot.available == 84

    def test_no_occupancy_leaves_counts_unknown(self):
        snapshot = compute_grid_capacity_snapshot({"rows": 2, "cols": 2})
        assert snapshot.theoretical == 4
        assert snapshot.effective == 4
        assert snapshot.occupied is None
        assert snapshot.available is None

    def test_empty_grid_has_no_snapshot(self):
        assert compute_grid_capacity_snapshot(None) is None
        assert compute_grid_capacity_snapshot({"rows": 0, "cols": 12}) is None
        assert compute_grid_capacity_snapshot(GridSpec(rows=4, cols=-1)) is None

    def test_override_disabled_slots_are_merged(self):
        snapshot = compute_grid_capacity_snapshot(
            GridSpec(rows=2, cols=2, disabled_slots=["A1"]),
            StorageUnitOverrides(grid_disabled_slots=["A1", "B2"]),
            occupied_slots=["A1", "A2"],
        )
        assert snapshot.effective == 2
        # A1 is disabled and does not count as occupied
        assert snapshot.occupied == 1
        assert snapshot.available == 1

    def test_enabled_slots_define_the_universe(self):
        snapshot = compute_grid_capacity_snapshot(
            {"rows": 8, "cols": 12, "enabled_slots": ["A1", "A2", "A3"]},
            {"grid_enabled_slots": ["A4"], "grid_disabled_slots": ["A2"]},
            occupied_slots={"A1": "s1", "A2": "s2", "H12": "s3"},
        )
        assert snapshot.theoretical == 96
        assert snapshot.effective == 3
        assert snapshot.occupied == 1
        assert snapshot.available == 2

    def test_disabled_beyond_theoretical_floors_at_zero(self):
        snapshot = compute_grid_capacity_snapshot(
            {"rows": 1, "cols": 2, "disabled_slots": ["A1", "A2", "Z9"]},
            occupied_slots=[],
        )
        assert snapshot.effective == 0
        assert snapshot.occupied == 0
        assert snapshot.available == 0


class TestDeriveCapacity:
    def test_flat_unit_uses_sample_count(self):
        unit = _unit(capacity_mode=CapacityMode.FLAT, capacity_slots=50, sample_count=7)
        snapshot = derive_capacity_snapshot(unit)
        assert (snapshot.theoretical, snapshot.effective) == (50, 50)
        assert (snapshot.occupied, snapshot.available) == (7, 43)

    def test_grid_unit_uses_observed_occupancy(self):
        unit = _unit(grid_spec={"rows": 2, "cols": 2})
        snapshot = derive_capacity_snapshot(unit, ["A1"])
        assert snapshot.occupied == 1
        assert snapshot.available == 3

    def test_grid_unit_falls_back_to_legacy_map(self):
        unit = _unit(grid_spec={"rows": 2, "cols": 2}, occupied_slots={"A1": "x", "B1": "y"})
        snapshot = derive_capacity_snapshot(unit)
        assert snapshot.occupied == 2


class TestPaths:
    def test_root_unit(self):
        unit = _unit(name="Freezer A")
        path = build_path_from_ancestors(unit)
        assert path.path_ids == [str(unit.id)]
        assert path.path_names == ["Freezer A"]
        assert path.full_path == "Freezer A"
        assert path.depth == 0

    def test_names_resolved_from_lookup(self):
        freezer = _unit(name="Freezer A")
        rack = _unit(name="Rack 3")
        box = _unit(name="Box 7", ancestors=[str(freezer.id), str(rack.id)])
        lookup = {str(freezer.id): freezer, str(rack.id): rack}

        path = build_path_from_ancestors(box, lookup)

        assert path.path_ids == [str(freezer.id), str(rack.id), str(box.id)]
        assert path.full_path == "Freezer A / Rack 3 / Box 7"
        assert path.depth == 2

    def test_unresolvable_ancestors_are_skipped(self):
        box = _unit(name="Box 7", ancestors=["missing-1", "missing-2"])
        path = build_path_from_ancestors(box, {"other": _unit(name="Other")})
        assert path.path_names == ["Box 7"]
        assert path.depth == 2

    def test_stored_path_names_win(self):
        box = _unit(
            name="Box 7",
            ancestors=["f1"],
            path_ids=["f1"],
            path_names=["Freezer A", "Box 7"],
        )
        path = build_path_from_ancestors(box, {"f1": _unit(name="Renamed")})
        assert path.full_path == "Freezer A / Box 7"
        assert path.path_ids == ["f1", str(box.id)]
