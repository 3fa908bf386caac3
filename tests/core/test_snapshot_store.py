from gridprobe.core.snapshot_store import SnapshotDiffStore


def test_first_sight_is_not_changed():
    store = SnapshotDiffStore()
    assert store.diff("0:0", "1") is False
    assert store.get("0:0") == "1"


def test_same_value_is_not_changed():
    store = SnapshotDiffStore()
    store.diff("0:0", "1")
    assert store.diff("0:0", "1") is False


def test_different_value_is_changed_once():
    store = SnapshotDiffStore()
    store.diff("2:3", "a")
    assert store.diff("2:3", "b") is True
    # History is single-slot: the next identical value is unchanged
    assert store.diff("2:3", "b") is False


def test_key_for_uses_absolute_position():
    assert SnapshotDiffStore.key_for(12, 7) == "12:7"


def test_diff_cell_matches_string_keys():
    store = SnapshotDiffStore()
    store.diff_cell(4, 5, "x")
    assert "4:5" in store
    assert store.diff("4:5", "y") is True


def test_entries_accumulate():
    store = SnapshotDiffStore()
    for row in range(3):
        for col in range(2):
            store.diff_cell(row, col, "v")
    assert len(store) == 6
    assert store.get("9:9") is None
