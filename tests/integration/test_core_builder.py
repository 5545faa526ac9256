"""Tests for the minimal core builder over a crawled mirror."""

import pytest

from mincore.core.models import CrawlOrder
from mincore.services.core_builder import MinimalCoreBuilder
from tests.helpers import assert_tiles, people


async def crawled(make_services, entries):
    """Services with G=4, P=1 whose mirror holds every entry."""
    services = await make_services(entries, volume_cap=4, buffer=1)
    result = await services.crawler().run(CrawlOrder("sn", "a", None, 4))
    assert result.completed
    return services


def bounds(splinters):
    return [(s.start, s.end, s.amount) for s in splinters]


async def test_splinters_hold_at_most_g_minus_p(make_services):
    services = await crawled(
        make_services, people("aa", "ab", "ac", "ba", "bb", "ca", "cb")
    )

    splinters = services.core_builder.build("sn", "a", None)

    assert bounds(splinters) == [("a", "ba", 3), ("ba", "cb", 3), ("cb", None, 1)]
    assert bounds(services.store.list_splinters("sn")) == bounds(splinters)
    assert_tiles(splinters, "a")


async def test_rebuild_is_idempotent(make_services):
    services = await crawled(
        make_services, people("aa", "ab", "ac", "ba", "bb", "ca", "cb")
    )

    first = services.core_builder.build("sn", "a", None)
    second = services.core_builder.build("sn", "a", None)

    assert bounds(first) == bounds(second)
    assert len(services.store.list_splinters()) == 3


async def test_dense_value_gets_lodis_splinters(make_services):
    services = await crawled(make_services, people("a", *["b"] * 7, "c"))

    splinters = services.core_builder.build("sn", "a", None)

    plain = [s for s in splinters if not s.is_lodis]
    lodis = [s for s in splinters if s.is_lodis]
    assert bounds(plain) == [("a", "b", 1), ("ba", None, 1)]
    assert [(s.lodis_start, s.lodis_end, s.amount) for s in lodis] == [
        ("0", "u05", 3),
        ("u05", "u08", 3),
        ("u08", None, 1),
    ]
    assert {(s.start, s.end) for s in lodis} == {("b", "ba")}
    assert_tiles(services.store.list_splinters("sn"), "a")


async def test_shrunk_lodis_area_collapses_to_plain_splinter(make_services):
    services = await crawled(make_services, people("a", *["b"] * 7, "c"))
    services.core_builder.build("sn", "a", None)

    for uid in ("u03", "u04", "u05", "u06", "u07"):
        services.provider.remove("uid", uid)
    await services.crawler().run(CrawlOrder("sn", "a", None, 4))

    splinters = services.core_builder.build("sn", "0", None, lodis_value="b")

    assert bounds(splinters) == [("b", "ba", 2)]
    stored = services.store.list_splinters("sn")
    assert [(s.start, s.end, s.is_lodis) for s in stored] == [
        ("a", "b", False),
        ("b", "ba", False),
        ("ba", None, False),
    ]


async def test_partial_lodis_rebuild_keeps_neighbours(make_services):
    services = await crawled(make_services, people("a", *["b"] * 7, "c"))
    services.core_builder.build("sn", "a", None)

    splinters = services.core_builder.build("sn", "u05", "u08", lodis_value="b")

    assert [(s.lodis_start, s.lodis_end) for s in splinters] == [("u05", "u08")]
    lodis = [s for s in services.store.list_splinters("sn") if s.is_lodis]
    assert [(s.lodis_start, s.lodis_end) for s in lodis] == [
        ("0", "u05"),
        ("u05", "u08"),
        ("u08", None),
    ]


async def test_bounded_build_clips_neighbours(make_services):
    services = await crawled(
        make_services, people("aa", "ab", "ac", "ba", "bb", "ca", "cb")
    )
    services.core_builder.build("sn", "a", None)

    services.core_builder.build("sn", "b", "c")

    stored = services.store.list_splinters("sn")
    assert_tiles(stored, "a")
    assert ("b", "c", 2) in bounds(stored)


async def test_temporary_plan_stretches_small_tail(make_services):
    services = await crawled(
        make_services, people("aa", "ab", "ac", "ba", "bb", "ca", "cb")
    )

    plain = services.core_builder.plan("sn", "ba", "c")
    stretched = services.core_builder.build_temporary("sn", "ba", "c")

    assert bounds(plain) == [("ba", "c", 2)]
    assert bounds(stretched) == [("ba", "cb", 3)]
    assert services.store.list_splinters() == []


def test_buffer_must_leave_room(store, alphabets):
    with pytest.raises(ValueError, match="no room"):
        MinimalCoreBuilder(store, alphabets, volume_cap=3, buffer=3)


def test_empty_mirror_gets_one_splinter(store, alphabets):
    builder = MinimalCoreBuilder(store, alphabets, volume_cap=2, buffer=0)

    splinters = builder.build("sn", "a", None)

    assert bounds(splinters) == [("a", None, 0)]
