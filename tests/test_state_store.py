from __future__ import annotations

from fleetsync.models.telemetry import TelemetryRecord
from fleetsync.state.store import RowStore


def _rec(vin: str, **fields: object) -> TelemetryRecord:
    return TelemetryRecord(vin=vin, **fields)


def test_replace_keeps_order() -> None:
    store = RowStore()
    store.replace([_rec("V2"), _rec("V1")])
    assert [r.vin for r in store.rows] == ["V2", "V1"]
    assert "V1" in store
    assert len(store) == 2


def test_replace_discards_previous_rows() -> None:
    store = RowStore()
    store.replace([_rec("V1")])
    store.replace([_rec("V9")])
    assert [r.vin for r in store.rows] == ["V9"]
    assert store.get("V1") is None


def test_append_after_existing_rows() -> None:
    store = RowStore()
    store.replace([_rec("V1"), _rec("V2")])
    store.append([_rec("V3"), _rec("V4")])
    assert [r.vin for r in store.rows] == ["V1", "V2", "V3", "V4"]
    assert store.get("V4") is not None


def test_duplicate_vin_keeps_first_slot() -> None:
    store = RowStore()
    store.replace([_rec("V1", fuel_level_pct=10), _rec("V2")])
    store.append([_rec("V1", fuel_level_pct=99), _rec("V3")])

    assert [r.vin for r in store.rows] == ["V1", "V2", "V3"]
    first = store.get("V1")
    assert first is not None
    assert first.fuel_level_pct == 10


def test_patch_is_copy_on_write() -> None:
    store = RowStore()
    original = _rec("V1", fuel_level_pct=50, mileage_km=1000)
    store.replace([original, _rec("V2")])
    before = store.rows

    assert store.patch("V1", {"fuel_level_pct": 40}) is True

    after = store.rows
    assert after is not before
    assert before[0] is original
    assert original.fuel_level_pct == 50
    assert after[0].fuel_level_pct == 40
    assert after[0].mileage_km == 1000
    assert [r.vin for r in after] == ["V1", "V2"]


def test_patch_unknown_vin_is_noop() -> None:
    store = RowStore()
    store.replace([_rec("V1")])
    version = store.version
    rows = store.rows

    assert store.patch("NOPE", {"fuel_level_pct": 1}) is False
    assert store.rows is rows
    assert store.version == version


def test_patch_without_change_is_noop() -> None:
    store = RowStore()
    store.replace([_rec("V1", fuel_level_pct=50)])
    version = store.version
    assert store.patch("V1", {"fuel_level_pct": 50}) is False
    assert store.version == version


def test_on_change_called_per_mutation() -> None:
    calls: list[int] = []
    store = RowStore(on_change=lambda: calls.append(1))

    store.replace([_rec("V1")])
    store.append([_rec("V2")])
    store.patch("V2", {"mileage_km": 3})
    store.clear()

    assert len(calls) == 4
    assert store.version == 4
    assert store.rows == ()
