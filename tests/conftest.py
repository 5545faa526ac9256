"""
Pytest configuration and fixtures for mincore tests.
"""

import os

import pytest

from mincore.core.alphabet import AlphabetSpace
from mincore.core.config.config import Config
from mincore.providers.database.duckdb_provider import DuckDBProvider
from mincore.providers.lookup import DirectoryLookupProvider
from mincore.registry import create_services
from tests.helpers import SMALL_ALPHABETS


@pytest.fixture
def clean_environment():
    """Clean up mincore environment variables before and after tests."""
    original_env = {}
    for key in list(os.environ.keys()):
        if key.startswith("MINCORE_"):
            original_env[key] = os.environ[key]
            del os.environ[key]

    yield

    for key in list(os.environ.keys()):
        if key.startswith("MINCORE_"):
            del os.environ[key]

    for key, value in original_env.items():
        os.environ[key] = value


@pytest.fixture
def alphabets():
    return AlphabetSpace(SMALL_ALPHABETS, "uid")


@pytest.fixture
def store():
    """In-memory mirror store with ``uid`` and ``sn`` columns."""
    provider = DuckDBProvider(":memory:", ["uid", "sn"], "uid")
    provider.connect()
    yield provider
    provider.disconnect()


@pytest.fixture
def make_services(tmp_path, clean_environment):
    """Factory wiring the full service stack over an in-memory directory.

    Remote calls are not paused and the mirror lives in memory.
    """
    created = []

    async def factory(
        entries,
        volume_cap=2,
        buffer=0,
        alphabets=None,
        time_limited=None,
        **mirror,
    ):
        config = Config(
            target_dir=tmp_path,
            overrides={
                "lookup": {
                    "provider": "directory",
                    "volume_cap": volume_cap,
                    "pause_seconds": 0,
                },
                "mirror": {
                    "attributes": alphabets or SMALL_ALPHABETS,
                    "buffer": buffer,
                    **mirror,
                },
            },
        )
        directory = DirectoryLookupProvider(entries, time_limited=time_limited)
        services = await create_services(config, provider=directory)
        created.append(services)
        return services

    yield factory

    for services in created:
        services.store.disconnect()
