"""Integration tests for the DuckDB mirror store."""

from datetime import datetime, timedelta

import pytest

from mincore.core.exceptions import StoreError
from mincore.core.models import Entry, LodisScope, RangeSpec, Splinter
from mincore.providers.database.duckdb_provider import DuckDBProvider


def entry(uid, sn):
    return Entry(uid, {"uid": uid, "sn": sn})


@pytest.fixture
def filled(store):
    store.replace_entries(
        RangeSpec("sn", "a", None),
        [entry("u3", "b"), entry("u1", "a"), entry("u2", "b"), entry("u4", "c")],
    )
    return store


class TestEntries:
    def test_scan_orders_by_value_then_key(self, filled):
        entries = filled.scan(RangeSpec("sn", "a", None))
        assert [(e.get("sn"), e.key) for e in entries] == [
            ("a", "u1"),
            ("b", "u2"),
            ("b", "u3"),
            ("c", "u4"),
        ]

    def test_scan_limit_and_bounds(self, filled):
        assert [e.key for e in filled.scan(RangeSpec("sn", "b", "c"), limit=1)] == ["u2"]
        assert filled.count(RangeSpec("sn", "b", "c")) == 2

    def test_scan_lodis_scope(self, filled):
        entries = filled.scan(RangeSpec("uid", "u3", None), lodis=LodisScope("sn", "b"))
        assert [e.key for e in entries] == ["u3"]

    def test_consistent_replace_deletes_vanished_entries(self, filled):
        filled.replace_entries(RangeSpec("sn", "b", "c"), [entry("u5", "bb")])
        assert [e.key for e in filled.all_entries()] == ["u1", "u4", "u5"]

    def test_upsert_keeps_other_entries(self, filled):
        filled.replace_entries(
            RangeSpec("sn", "b", "c"), [entry("u2", "ba")], delete_old=False
        )
        assert [(e.key, e.get("sn")) for e in filled.all_entries()] == [
            ("u1", "a"),
            ("u2", "ba"),
            ("u3", "b"),
            ("u4", "c"),
        ]

    def test_moved_entry_is_not_duplicated(self, filled):
        # u1 changed its surname outside the replaced range
        filled.replace_entries(RangeSpec("sn", "c", None), [entry("u1", "c"), entry("u4", "c")])
        assert [e.key for e in filled.all_entries()] == ["u1", "u2", "u3", "u4"]
        assert filled.count(RangeSpec("sn", "a", "b")) == 0

    def test_select_intersects_ranges(self, filled):
        selected = filled.select(
            [RangeSpec("sn", "b", "c"), RangeSpec("uid", "u3", None)]
        )
        assert [e.key for e in selected] == ["u3"]

    def test_failed_write_rolls_back(self, filled):
        with pytest.raises(RuntimeError):
            with filled.transaction():
                filled.replace_entries(RangeSpec("sn", "a", None), [])
                raise RuntimeError("boom")
        assert len(filled.all_entries()) == 4

    def test_database_errors_become_store_errors(self, filled):
        with pytest.raises(StoreError):
            with filled.transaction():
                filled.connection.execute("SELECT * FROM missing_table")
        assert len(filled.all_entries()) == 4


class TestSplinters:
    def test_replace_clips_overhanging_splinters(self, filled):
        filled.replace_splinters("sn", "a", None, [Splinter("sn", "a", None, 4)])
        filled.replace_splinters("sn", "b", "c", [Splinter("sn", "b", "c", 2)])

        splinters = filled.list_splinters("sn")
        assert [(s.start, s.end, s.amount) for s in splinters] == [
            ("a", "b", 1),
            ("b", "c", 2),
            ("c", None, 1),
        ]

    def test_replace_removes_lodis_inside(self, filled):
        filled.replace_splinters(
            "sn",
            "a",
            None,
            [
                Splinter("sn", "a", "b", 1),
                Splinter("sn", "b", "ba", 1, lodis_start="0", lodis_end="u3"),
                Splinter("sn", "b", "ba", 1, lodis_start="u3", lodis_end=None),
                Splinter("sn", "ba", None, 1),
            ],
        )
        filled.replace_splinters("sn", "b", "ba", [Splinter("sn", "b", "ba", 2)])

        assert [(s.start, s.end, s.is_lodis) for s in filled.list_splinters()] == [
            ("a", "b", False),
            ("b", "ba", False),
            ("ba", None, False),
        ]

    def test_replace_lodis_range(self, filled):
        filled.replace_splinters(
            "sn",
            "b",
            "ba",
            [
                Splinter("sn", "b", "ba", 1, lodis_start="0", lodis_end="u3"),
                Splinter("sn", "b", "ba", 1, lodis_start="u3", lodis_end=None),
            ],
        )
        filled.replace_lodis_splinters(
            "sn", "b", "u3", None, [Splinter("sn", "b", "ba", 1, "u3", "u4")]
        )

        lodis = filled.list_splinters("sn")
        assert [(s.lodis_start, s.lodis_end) for s in lodis] == [
            ("0", "u3"),
            ("u3", "u4"),
        ]

    def test_recount(self, filled):
        stale = Splinter("sn", "b", "c", 0)
        assert filled.recount(stale).amount == 2
        lodis = Splinter("sn", "b", "ba", 0, lodis_start="u3", lodis_end=None)
        assert filled.recount(lodis).amount == 1

    def test_update_boundary_moves_maintenance_row(self, filled):
        old = Splinter("sn", "a", "c", 3)
        filled.replace_splinters("sn", "a", "c", [old])
        filled.add_maintenance([old])

        new = filled.recount(old.with_updates(start="b"))
        filled.update_splinter_boundary(old, new)

        assert [(s.start, s.amount) for s in filled.list_splinters()] == [("b", 2)]
        assert [(s.start, s.amount) for s in filled.list_maintenance()] == [("b", 2)]


class TestMaintenance:
    def test_find_due_intersects(self, store):
        store.add_maintenance(
            [Splinter("sn", "a", "b"), Splinter("sn", "b", "c"), Splinter("sn", "c", None)]
        )
        due = store.find_due("sn", "b", "ba")
        assert [(s.start, s.end) for s in due] == [("b", "c")]
        assert len(store.find_due("sn", "bz", None)) == 2
        assert store.find_due("uid", None, None) == []

    def test_resolve_only_covered_rows(self, store):
        store.add_maintenance([Splinter("sn", "a", "b"), Splinter("sn", "b", "d")])
        assert store.resolve_maintenance("sn", "a", "c") == 1
        assert [(s.start, s.end) for s in store.list_maintenance()] == [("b", "d")]

    def test_resolve_lodis_rows(self, store):
        store.add_maintenance(
            [
                Splinter("sn", "b", "ba", lodis_start="0", lodis_end="u3"),
                Splinter("sn", "b", "ba", lodis_start="u3", lodis_end=None),
            ]
        )
        assert store.resolve_maintenance("sn", "b", None, "0", "u3") == 1
        assert store.resolve_maintenance("sn", "b", None, "u3", None) == 1
        assert store.list_maintenance() == []

    def test_mark_stale_uses_age(self, store):
        store.replace_splinters("sn", "a", None, [Splinter("sn", "a", "b"), Splinter("sn", "b", None)])

        assert store.mark_stale(datetime.now() - timedelta(days=1)) == 0
        assert store.mark_stale(datetime.now() + timedelta(seconds=1)) == 2
        # Marking again replaces rows instead of duplicating them
        assert store.mark_stale(datetime.now() + timedelta(seconds=1)) == 2
        assert len(store.list_maintenance()) == 2


def test_file_database_persists(tmp_path):
    path = tmp_path / "mirror" / "mirror.duckdb"
    first = DuckDBProvider(path, ["uid", "sn"], "uid")
    first.connect()
    first.replace_entries(RangeSpec("sn", "a", None), [entry("u1", "a")])
    first.disconnect()

    second = DuckDBProvider(path, ["uid", "sn"], "uid")
    second.connect()
    try:
        assert [e.key for e in second.all_entries()] == ["u1"]
    finally:
        second.disconnect()


def test_rejects_unsafe_attribute_names():
    with pytest.raises(ValueError, match="Invalid attribute name"):
        DuckDBProvider(":memory:", ["uid", "sn; drop"], "uid")
