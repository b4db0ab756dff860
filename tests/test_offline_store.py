"""
Tests for the local attendance store.
"""

from conftest import make_record, ms


def test_insert_same_id_twice_keeps_one_record(store):
    """Test that inserting a record id twice replaces instead of duplicating."""
    store.insert(make_record("rec-1", ms(9)))
    store.insert(make_record("rec-1", ms(9, 5), scan_type="finger"))

    unsynced = store.list_unsynced()

    assert len(unsynced) == 1
    assert store.count_unsynced() == 1
    assert unsynced[0].timestamp == ms(9, 5)
    assert unsynced[0].scan_type == "finger"


def test_list_unsynced_is_oldest_first(store):
    """Test ascending timestamp order regardless of insertion order."""
    store.insert(make_record("late", ms(17), "check_out"))
    store.insert(make_record("early", ms(8)))
    store.insert(make_record("middle", ms(12), "check_out"))

    ids = [r.id for r in store.list_unsynced()]

    assert ids == ["early", "middle", "late"]


def test_list_unsynced_excludes_synced(store):
    store.insert(make_record("pending", ms(9)))
    store.insert(make_record("done", ms(8), synced=True))

    assert [r.id for r in store.list_unsynced()] == ["pending"]
    assert store.count_unsynced() == 1


def test_mark_synced(store):
    store.insert(make_record("rec-1", ms(9)))

    assert store.mark_synced("rec-1") is True
    assert store.count_unsynced() == 0
    assert store.get("rec-1").synced is True


def test_mark_synced_unknown_id_is_noop(store):
    store.insert(make_record("rec-1", ms(9)))

    assert store.mark_synced("missing") is False
    assert store.count_unsynced() == 1


def test_purge_removes_only_old_synced_records(store):
    """Test the retention policy keeps unsynced records whatever their age."""
    store.insert(make_record("old-synced", ms(8, day=1), synced=True))
    store.insert(make_record("old-unsynced", ms(8, day=1)))
    store.insert(make_record("new-synced", ms(8, day=14), synced=True))

    purged = store.purge_synced_older_than(ms(0, day=10))

    assert purged == 1
    assert store.get("old-synced") is None
    assert store.get("old-unsynced") is not None
    assert store.get("new-synced") is not None


def test_purge_cutoff_is_exclusive(store):
    store.insert(make_record("at-cutoff", ms(8), synced=True))

    assert store.purge_synced_older_than(ms(8)) == 0
    assert store.get("at-cutoff") is not None
