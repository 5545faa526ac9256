"""End-to-end crawls against the in-memory directory."""

import pytest

from mincore.core.exceptions import StructuralInvariantError
from mincore.core.models import CrawlOrder
from tests.helpers import mirrored, people, remote

CRAWLERS = ["trench", "rank_shrink"]


@pytest.mark.parametrize("crawler", CRAWLERS)
async def test_crawl_mirrors_truncated_namespace(make_services, crawler):
    services = await make_services(people("aa", "ab", "ac", "ba", "bb", "ca"))

    result = await services.crawler(crawler).run(CrawlOrder("sn", "a", None, 2))

    assert result.completed
    assert mirrored(services.store) == remote(services.provider)
    assert result.metrics.truncated_queries >= 1
    assert result.metrics.remote_calls == (
        result.metrics.consistent_queries
        + result.metrics.truncated_queries
        + result.metrics.failed_queries
    )


@pytest.mark.parametrize("crawler", CRAWLERS)
async def test_crawl_resolves_dense_value_with_lodis(make_services, crawler):
    services = await make_services(people("a", "b", "b", "b", "c"))

    result = await services.crawler(crawler).run(CrawlOrder("sn", "a", None, 2))

    assert result.completed
    assert mirrored(services.store) == remote(services.provider)
    assert result.metrics.lodis_entries >= 3


@pytest.mark.parametrize("crawler", CRAWLERS)
async def test_recrawl_follows_remote_changes(make_services, crawler):
    services = await make_services(people("aa", "ab", "ba", "bb", "ca"))
    directory = services.provider
    order = CrawlOrder("sn", "a", None, 2)
    await services.crawler(crawler).run(order)

    directory.remove("sn", "ab")
    directory.add({"uid": "u10", "sn": "bc"})
    directory.add({"uid": "u11", "sn": "aaa"})
    result = await services.crawler(crawler).run(order)

    assert result.completed
    assert mirrored(services.store) == remote(directory)


async def test_warm_mirror_avoids_truncation(make_services):
    surnames = ["aa", "ab", "ac", "ba", "bb", "bc", "ca", "cb", "cc"]
    services = await make_services(people(*surnames), volume_cap=3)
    crawler = services.crawler("trench")
    order = CrawlOrder("sn", "a", None, 3)

    await crawler.run(order)
    warm = await crawler.run(order)

    assert warm.completed
    assert warm.metrics.truncated_queries == 0
    assert mirrored(services.store) == remote(services.provider)


async def test_bounded_crawl_leaves_outside_untouched(make_services):
    services = await make_services(people("aa", "ba", "bb", "ca"))

    await services.crawler("trench").run(CrawlOrder("sn", "b", "c", 2))

    assert mirrored(services.store) == [("u02", "ba"), ("u03", "bb")]


async def test_lodis_order_crawls_uniqueness_attribute(make_services):
    services = await make_services(people("a", "b", "b", "b", "b", "c"))
    order = CrawlOrder("uid", "0", None, 2, lodis_field="sn", lodis_value="b")

    result = await services.crawler("trench").run(order)

    assert result.completed
    assert [key for key, _ in mirrored(services.store)] == ["u02", "u03", "u04", "u05"]


async def test_duplicate_keys_break_rank_shrink(make_services):
    duplicated = [{"uid": "u1", "sn": sn} for sn in ("a", "b", "c")]
    services = await make_services(duplicated)

    with pytest.raises(StructuralInvariantError):
        await services.crawler("rank_shrink").run(CrawlOrder("uid", "0", None, 2))


async def test_blocked_range_reports_limit(make_services):
    services = await make_services(
        people("aa", "ab", "ac"), time_limited=lambda text: True
    )

    result = await services.crawler("rank_shrink").run(CrawlOrder("sn", "a", "b", 2))

    assert result.blocked
    assert result.limit == "b"
    assert services.store.all_entries() == []
