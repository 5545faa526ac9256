"""Tests for on-demand refreshing through the freshness coordinator."""

import pytest

from mincore.core.models import CrawlOrder, Splinter
from mincore.services.freshness_coordinator import RefreshStatus
from tests.helpers import PERSON_ALPHABETS, assert_tiles, mirrored, people, remote

SURNAMES = ("adams", "bo", "bob", "bond", "boris", "brown", "cole")


async def warm_services(make_services, **mirror):
    """Mirror with G=4, P=1 and a built core, every splinter due."""
    services = await make_services(
        people(*SURNAMES),
        volume_cap=4,
        buffer=1,
        alphabets=PERSON_ALPHABETS,
        **mirror,
    )
    result = await services.crawler().run(CrawlOrder("sn", " ", None, 4))
    assert result.completed
    splinters = services.core_builder.build("sn", " ", None)
    assert [(s.start, s.end) for s in splinters] == [
        (" ", "bond"),
        ("bond", "cole"),
        ("cole", None),
    ]
    return services


def surnames(response):
    return sorted(entry["sn"] for entry in response.entries)


async def test_refresh_rebuilds_due_hole(make_services):
    services = await warm_services(make_services)
    directory = services.provider
    directory.add({"uid": "u08", "sn": "Bolt"})
    directory.remove("sn", "boris")
    assert services.coordinator.mark_stale(0) == 3

    response = await services.coordinator.refresh({"sn": "bo*"})

    assert response.status is RefreshStatus.OK
    assert surnames(response) == ["bo", "bob", "bolt", "bond"]
    assert response.metrics.remote_calls == 2
    assert response.crawl_orders == []
    stored = services.store.list_splinters("sn")
    assert [(s.start, s.end) for s in stored] == [
        (" ", "bolt"),
        ("bolt", "cole"),
        ("cole", None),
    ]
    assert_tiles(stored, " ")
    # Only the splinter outside the request stays due
    assert [s.start for s in services.store.list_maintenance()] == ["cole"]


async def test_fresh_mirror_answers_locally(make_services):
    services = await warm_services(make_services)

    response = await services.coordinator.refresh({"sn": "Bob"})

    assert response.status is RefreshStatus.OK
    assert response.metrics.remote_calls == 0
    assert response.entries == [{"sn": "bob", "uid": "u03"}]


async def test_unreachable_service_degrades(make_services):
    services = await warm_services(make_services)
    services.coordinator.mark_stale(0)
    services.provider.unreachable = True

    response = await services.coordinator.refresh({"sn": "bo*"})

    assert response.status is RefreshStatus.DEGRADED
    assert response.degraded
    assert surnames(response) == ["bo", "bob", "bond", "boris"]
    due = services.store.list_maintenance()
    assert [(s.start, s.end) for s in due] == [
        (" ", "bond"),
        ("bond", "cole"),
        ("cole", None),
    ]
    assert_tiles(services.store.list_splinters("sn"), " ")


async def test_crowded_navigator_escalates(make_services):
    services = await warm_services(make_services)
    directory = services.provider
    for i, sn in enumerate(("boa", "bobby", "bolt"), 8):
        directory.add({"uid": f"u{i:02d}", "sn": sn})
    services.coordinator.mark_stale(0)

    response = await services.coordinator.refresh({"sn": "bo*"})

    assert response.status is RefreshStatus.OK
    assert len(response.crawl_orders) == 1
    assert response.crawl_orders[0].start == " "
    assert surnames(response) == ["bo", "boa", "bob", "bobby", "bolt", "bond", "boris"]
    assert mirrored(services.store) == remote(directory)
    stored = services.store.list_splinters("sn")
    assert all(s.amount <= 3 for s in stored)
    assert_tiles(stored, " ")


async def test_background_escalation(make_services):
    services = await warm_services(make_services, wait_for_escalation=False)
    directory = services.provider
    for i, sn in enumerate(("boa", "bobby", "bolt"), 8):
        directory.add({"uid": f"u{i:02d}", "sn": sn})
    services.coordinator.mark_stale(0)

    response = await services.coordinator.refresh({"sn": "bo*"})
    assert len(response.crawl_orders) == 1
    await services.coordinator.drain()

    assert mirrored(services.store) == remote(directory)
    assert_tiles(services.store.list_splinters("sn"), " ")


async def test_background_escalation_holds_field_lock(make_services, monkeypatch):
    services = await warm_services(make_services, wait_for_escalation=False)
    coordinator = services.coordinator
    batch_service = services.batch_service
    for i, sn in enumerate(("boa", "bobby", "bolt"), 8):
        services.provider.add({"uid": f"u{i:02d}", "sn": sn})
    coordinator.mark_stale(0)

    locked_during_run = []
    run = batch_service.run

    async def observed_run(request):
        locked_during_run.append(coordinator._field_lock("sn").locked())
        return await run(request)

    monkeypatch.setattr(batch_service, "run", observed_run)

    await coordinator.refresh({"sn": "bo*"})
    await coordinator.drain()

    assert locked_during_run == [True]
    assert mirrored(services.store) == remote(services.provider)


async def test_prefix_of_maximal_character_reads_to_namespace_end(make_services):
    services = await make_services(
        people("b", "c", "ca", "cb", "cc"), volume_cap=4, buffer=1
    )
    result = await services.crawler().run(CrawlOrder("sn", "a", None, 4))
    assert result.completed
    services.core_builder.build("sn", "a", None)

    fresh = await services.coordinator.refresh({"sn": "c*"})
    services.coordinator.mark_stale(0)
    refreshed = await services.coordinator.refresh({"sn": "c*"})

    assert surnames(fresh) == ["c", "ca", "cb", "cc"]
    assert fresh.metrics.remote_calls == 0
    assert surnames(refreshed) == ["c", "ca", "cb", "cc"]
    assert refreshed.metrics.remote_calls > 0


class TestRequestRanges:
    async def test_value_and_prefix(self, make_services):
        services = await make_services([], alphabets=PERSON_ALPHABETS)
        coordinator = services.coordinator

        value, prefix = coordinator.request_ranges({"sn": "Smith", "uid": "u1*"})
        (everything,) = coordinator.request_ranges({"sn": "*"})

        assert (value.start, value.end) == ("smith", "smith '")
        assert (prefix.start, prefix.end) == ("u1", "u2")
        assert (everything.start, everything.end) == ("", None)

    async def test_all_maximal_prefix_is_open_ended(self, make_services):
        services = await make_services([])
        coordinator = services.coordinator

        (top,) = coordinator.request_ranges({"sn": "c*"})
        (deeper,) = coordinator.request_ranges({"sn": "cc*"})
        (bounded,) = coordinator.request_ranges({"sn": "bc*"})

        assert (top.start, top.end) == ("c", None)
        assert (deeper.start, deeper.end) == ("cc", None)
        assert (bounded.start, bounded.end) == ("bc", "c")

    async def test_unknown_attribute(self, make_services):
        services = await make_services([])
        with pytest.raises(ValueError, match="not searchable"):
            services.coordinator.request_ranges({"cn": "smith"})


class TestMergeHoles:
    @pytest.fixture
    async def coordinator(self, make_services):
        services = await make_services([])
        return services.coordinator

    async def test_adjacent_splinters_merge(self, coordinator):
        holes = coordinator.merge_holes(
            [Splinter("sn", "b", "c"), Splinter("sn", "a", "b")]
        )
        assert [(h.start, h.end, len(h.due)) for h in holes] == [("a", "c", 2)]

    async def test_gap_keeps_holes_apart(self, coordinator):
        holes = coordinator.merge_holes(
            [Splinter("sn", "a", "b"), Splinter("sn", "c", None)]
        )
        assert [(h.start, h.end) for h in holes] == [("a", "b"), ("c", None)]

    async def test_lodis_inside_plain_hole(self, coordinator):
        holes = coordinator.merge_holes(
            [
                Splinter("sn", "a", "c"),
                Splinter("sn", "b", "ba", lodis_start="0", lodis_end="u5"),
            ]
        )
        assert len(holes) == 1
        assert not holes[0].is_lodis

    async def test_lodis_chunks_of_one_value_merge(self, coordinator):
        holes = coordinator.merge_holes(
            [
                Splinter("sn", "b", "ba", lodis_start="0", lodis_end="u5"),
                Splinter("sn", "b", "ba", lodis_start="u5", lodis_end=None),
            ]
        )
        assert [(h.lodis_start, h.lodis_end) for h in holes] == [("0", None)]

    async def test_fields_stay_apart(self, coordinator):
        holes = coordinator.merge_holes(
            [Splinter("sn", "a", None), Splinter("uid", "0", None)]
        )
        assert [h.field for h in holes] == ["sn", "uid"]
