"""Execution context and connection handle for a single connectivity test."""

import asyncio
import logging
import ssl
from enum import Enum
from typing import TYPE_CHECKING, Any, Coroutine, Dict, Optional, TypeVar

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from .exceptions import ConnectError, SetupError

if TYPE_CHECKING:
    from .odbc_uri import ClientOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PING_DATABASE = "admin"


class TypeMode(str, Enum):
    """Set of data types reported for result columns."""

    STANDARD = "Standard"
    SIMPLE = "Simple"


class ExecutionContext:
    """Private single-threaded event loop driving one connection attempt.

    Never shared: each test creates its own and hands it over to
    MongoConnection.connect(), which closes it on failure or on shutdown.
    """

    def __init__(self) -> None:
        try:
            self._loop = asyncio.new_event_loop()
        except (OSError, RuntimeError) as exc:
            raise SetupError.from_exception(exc, f"Failed to create event loop: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._loop.is_closed()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run a coroutine to completion on this context."""
        return self._loop.run_until_complete(coro)

    def close(self) -> None:
        """Finish async generators, join resolver threads and close the loop."""
        if self._loop.is_closed():
            return
        try:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.run_until_complete(self._loop.shutdown_default_executor())
        finally:
            self._loop.close()


def build_client_kwargs(
    options: "ClientOptions",
    connection_timeout: Optional[int],
    login_timeout: Optional[int],
) -> Dict[str, Any]:
    """Translate tester timeouts (seconds) into pymongo client options.

    A timeout of 0 (or None) leaves pymongo's default in place.
    """
    kwargs = options.client_kwargs()
    if login_timeout:
        kwargs["serverSelectionTimeoutMS"] = login_timeout * 1000
        kwargs["connectTimeoutMS"] = login_timeout * 1000
    if connection_timeout:
        kwargs["socketTimeoutMS"] = connection_timeout * 1000
    return kwargs


class MongoConnection:
    """Live connection to a MongoDB deployment.

    Usage:
        conn = MongoConnection.connect(options, None, None, 30, TypeMode.STANDARD, context, None)
        print(conn.cluster_type)
        conn.shutdown()
    """

    def __init__(
        self,
        client: Any,
        context: ExecutionContext,
        cluster_type: str,
        uuid_representation: Optional[str] = None,
        database: Optional[str] = None,
        type_mode: TypeMode = TypeMode.STANDARD,
        max_string_length: Optional[int] = None,
    ):
        self.client = client
        self.context = context
        self.cluster_type = cluster_type
        self.uuid_representation = uuid_representation
        self.database = database
        self.type_mode = type_mode
        self.max_string_length = max_string_length
        self._closed = False

    @classmethod
    def connect(
        cls,
        options: "ClientOptions",
        database: Optional[str],
        connection_timeout: Optional[int],
        login_timeout: Optional[int],
        type_mode: TypeMode,
        context: ExecutionContext,
        max_string_length: Optional[int],
    ) -> "MongoConnection":
        """Connect and verify the deployment answers a ping.

        Takes ownership of ``context``; it is closed here if connecting fails.

        Raises:
            ConnectError: On any network, authentication, TLS or server error
        """
        try:
            return context.run(
                cls._connect(
                    options,
                    database or options.database,
                    build_client_kwargs(options, connection_timeout, login_timeout),
                    type_mode,
                    context,
                    max_string_length,
                )
            )
        except Exception:
            context.close()
            raise

    @classmethod
    async def _connect(
        cls,
        options: "ClientOptions",
        database: Optional[str],
        kwargs: Dict[str, Any],
        type_mode: TypeMode,
        context: ExecutionContext,
        max_string_length: Optional[int],
    ) -> "MongoConnection":
        client = None
        try:
            client = AsyncMongoClient(options.uri, **kwargs)
            await client[database or DEFAULT_PING_DATABASE].command("ping")
            cluster_type = client.topology_description.topology_type_name
        except (PyMongoError, ssl.SSLError, OSError) as exc:
            # Unreadable or malformed TLS files fail while building the client
            if client is not None:
                await client.close()
            raise ConnectError.from_exception(exc) from exc

        logger.debug("Connected to %s (%s)", ", ".join(options.hosts), cluster_type)
        return cls(
            client,
            context,
            cluster_type=cluster_type,
            uuid_representation=options.uuid_representation,
            database=database,
            type_mode=type_mode,
            max_string_length=max_string_length,
        )

    def shutdown(self) -> None:
        """Close the client and release the execution context."""
        if self._closed:
            return
        self._closed = True
        try:
            self.context.run(self.client.close())
        finally:
            self.context.close()
