"""Service registry - builds mincore components from a Config.

Single composition root for the CLI and for embedding applications. Every
component is created here so that all of them share one store, one executor
and one set of alphabets.

CREATION SEQUENCE:
1. Alphabets from the mirror section
2. Lookup provider (LDAP or in-memory directory)
3. DuckDB mirror store, connected
4. Executor, crawlers, core builder, batch service, coordinator
"""

from dataclasses import dataclass

from loguru import logger

from mincore.core.alphabet import AlphabetSpace
from mincore.core.config import Config
from mincore.interfaces.lookup_provider import LookupProvider
from mincore.providers.database.duckdb_provider import DuckDBProvider
from mincore.providers.lookup import DirectoryLookupProvider
from mincore.services.base_crawler import BaseCrawler
from mincore.services.batch_search_service import BatchSearchService
from mincore.services.core_builder import MinimalCoreBuilder
from mincore.services.freshness_coordinator import FreshnessCoordinator
from mincore.services.query_executor import RemoteQueryExecutor
from mincore.services.rank_shrink_crawler import RankShrinkCrawler
from mincore.services.trench_crawler import TrenchCrawler


@dataclass
class Services:
    """Fully wired component set."""

    config: Config
    alphabets: AlphabetSpace
    provider: LookupProvider
    store: DuckDBProvider
    executor: RemoteQueryExecutor
    crawlers: dict[str, BaseCrawler]
    core_builder: MinimalCoreBuilder
    batch_service: BatchSearchService
    coordinator: FreshnessCoordinator

    @property
    def volume_cap(self) -> int:
        return self.config.lookup.volume_cap

    def crawler(self, name: str | None = None) -> BaseCrawler:
        return self.batch_service.crawler(name)

    async def close(self) -> None:
        await self.coordinator.drain()
        await self.provider.close()
        self.store.disconnect()


def create_alphabets(config: Config) -> AlphabetSpace:
    return AlphabetSpace(
        config.mirror.attributes, config.mirror.uniqueness_attribute
    )


def create_lookup_provider(config: Config) -> LookupProvider:
    """Create the configured lookup provider.

    Raises:
        ValueError: If the LDAP provider is selected without a URL
    """
    lookup = config.lookup
    if lookup.provider == "directory":
        if lookup.directory_fixture is not None:
            return DirectoryLookupProvider.from_fixture(lookup.directory_fixture)
        logger.warning("Directory provider without fixture serves no entries")
        return DirectoryLookupProvider()

    if not lookup.is_configured():
        raise ValueError(
            "LDAP provider needs a URL. Set it via --url, "
            "MINCORE_LOOKUP__URL or the config file."
        )
    # ldap3 is only imported when an LDAP server is actually used
    from mincore.providers.lookup.ldap_provider import LDAPLookupProvider

    return LDAPLookupProvider(
        url=lookup.url,
        base_dn=lookup.base_dn,
        bind_dn=lookup.bind_dn,
        password=lookup.password,
        object_class=lookup.object_class,
        timeout=lookup.timeout,
    )


def create_store(config: Config) -> DuckDBProvider:
    store = DuckDBProvider(
        config.database.get_db_path(),
        list(config.mirror.attributes),
        config.mirror.uniqueness_attribute,
    )
    store.connect()
    return store


async def create_services(
    config: Config,
    provider: LookupProvider | None = None,
    store: DuckDBProvider | None = None,
) -> Services:
    """Wire every component for a configuration.

    Args:
        config: Validated configuration
        provider: Lookup provider to use instead of the configured one
        store: Connected store to use instead of opening the configured one

    Returns:
        Services with a connected provider and store
    """
    mirror = config.mirror
    lookup = config.lookup
    alphabets = create_alphabets(config)

    provider = provider or create_lookup_provider(config)
    await provider.connect()
    store = store or create_store(config)

    executor = RemoteQueryExecutor(
        provider,
        alphabets,
        list(mirror.attributes),
        pause_seconds=lookup.pause_seconds,
        retry_schemas=mirror.schema_retries,
    )
    crawlers: dict[str, BaseCrawler] = {
        TrenchCrawler.name: TrenchCrawler(store, executor, alphabets),
        RankShrinkCrawler.name: RankShrinkCrawler(
            store, executor, alphabets, density_divisor=mirror.density_divisor
        ),
    }
    core_builder = MinimalCoreBuilder(
        store, alphabets, lookup.volume_cap, mirror.buffer
    )
    batch_service = BatchSearchService(
        crawlers,
        core_builder,
        default_crawler=mirror.crawler,
        time_budget=mirror.time_budget_seconds,
    )
    coordinator = FreshnessCoordinator(
        store,
        executor,
        core_builder,
        batch_service,
        alphabets,
        volume_cap=lookup.volume_cap,
        visible_attributes=mirror.visible_attributes,
        step=mirror.scan_step(lookup.volume_cap),
        staleness_days=mirror.staleness_days,
        wait_for_escalation=mirror.wait_for_escalation,
    )

    logger.debug(
        f"Services ready: provider={provider.name}, store={store.db_path}, "
        f"crawler={mirror.crawler}, G={lookup.volume_cap}, P={mirror.buffer}"
    )
    return Services(
        config=config,
        alphabets=alphabets,
        provider=provider,
        store=store,
        executor=executor,
        crawlers=crawlers,
        core_builder=core_builder,
        batch_service=batch_service,
        coordinator=coordinator,
    )
