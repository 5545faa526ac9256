"""LDAP lookup provider implementation for mincore."""

import asyncio
import time
from typing import Any

from ldap3 import ALL_ATTRIBUTES, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPBindError, LDAPException, LDAPSocketOpenError
from loguru import logger

from mincore.core.exceptions import RemoteUnreachableError
from mincore.interfaces.lookup_provider import LookupProvider, LookupResponse

# Result codes signalling that the server stopped before returning every match
RESULT_SUCCESS = 0
RESULT_TIME_LIMIT_EXCEEDED = 3
RESULT_SIZE_LIMIT_EXCEEDED = 4
RESULT_ADMIN_LIMIT_EXCEEDED = 11
_LIMIT_CODES = {
    RESULT_TIME_LIMIT_EXCEEDED: "time",
    RESULT_SIZE_LIMIT_EXCEEDED: "size",
    RESULT_ADMIN_LIMIT_EXCEEDED: "admin",
}


class LDAPLookupProvider(LookupProvider):
    """Directory search over LDAP using ldap3.

    ldap3 is synchronous, so every call runs in a worker thread to keep the
    pause and latency of one crawl from blocking unrelated crawls.
    """

    def __init__(
        self,
        url: str,
        base_dn: str,
        bind_dn: str | None = None,
        password: str | None = None,
        object_class: str = "person",
        timeout: int = 30,
    ):
        """Initialize LDAP provider.

        Args:
            url: Server URL (ldap:// or ldaps://)
            base_dn: Search base
            bind_dn: DN to bind as (anonymous bind when None)
            password: Bind password
            object_class: Object class every returned entry must carry
            timeout: Per-search time limit in seconds
        """
        self._url = url
        self._base_dn = base_dn
        self._bind_dn = bind_dn
        self._password = password
        self._object_class = object_class
        self._timeout = timeout
        self._connection: Connection | None = None

    @property
    def name(self) -> str:
        return "ldap"

    async def connect(self) -> None:
        if self._connection is not None and self._connection.bound:
            return
        self._connection = await asyncio.to_thread(self._bind)

    def _bind(self) -> Connection:
        try:
            server = Server(self._url, connect_timeout=self._timeout)
            connection = Connection(
                server,
                user=self._bind_dn,
                password=self._password,
                auto_bind=True,
                receive_timeout=self._timeout,
                raise_exceptions=False,
            )
            logger.info(f"Bound to LDAP server {self._url}")
            return connection
        except (LDAPSocketOpenError, LDAPBindError) as e:
            logger.error(f"LDAP bind to {self._url} failed: {e}")
            raise RemoteUnreachableError(f"Cannot bind to {self._url}: {e}") from e
        except LDAPException as e:
            logger.error(f"LDAP connection to {self._url} failed: {e}")
            raise RemoteUnreachableError(f"Cannot reach {self._url}: {e}") from e

    async def close(self) -> None:
        if self._connection is not None:
            await asyncio.to_thread(self._connection.unbind)
            self._connection = None

    async def search(
        self,
        filter_text: str,
        attributes: list[str],
        size_limit: int,
    ) -> LookupResponse:
        await self.connect()
        return await asyncio.to_thread(
            self._search, filter_text, attributes, size_limit
        )

    def _search(
        self, filter_text: str, attributes: list[str], size_limit: int
    ) -> LookupResponse:
        assert self._connection is not None
        full_filter = f"(&(objectClass={self._object_class}){filter_text})"
        started = time.perf_counter()
        try:
            self._connection.search(
                search_base=self._base_dn,
                search_filter=full_filter,
                search_scope=SUBTREE,
                attributes=attributes or ALL_ATTRIBUTES,
                size_limit=size_limit,
                time_limit=self._timeout,
            )
        except LDAPException as e:
            logger.error(f"LDAP search failed: {e}")
            self._connection = None
            raise RemoteUnreachableError(f"LDAP search failed: {e}") from e

        elapsed = time.perf_counter() - started
        code = self._connection.result.get("result", RESULT_SUCCESS)
        if code not in (RESULT_SUCCESS, *_LIMIT_CODES):
            description = self._connection.result.get("description")
            raise RemoteUnreachableError(f"LDAP search error {code}: {description}")

        entries = [
            self._flatten(item.get("attributes", {}))
            for item in self._connection.response or []
            if item.get("type") == "searchResEntry"
        ]
        complete = code == RESULT_SUCCESS
        return LookupResponse(
            entries=entries,
            complete=complete,
            elapsed=elapsed,
            diagnostics={"limit": _LIMIT_CODES[code]} if not complete else {},
        )

    @staticmethod
    def _flatten(attributes: dict[str, Any]) -> dict[str, Any]:
        flat: dict[str, Any] = {}
        for name, value in attributes.items():
            if isinstance(value, list):
                value = value[0] if value else None
            flat[name] = value
        return flat
