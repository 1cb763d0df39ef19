"""
MongoDB ODBC Connectivity Tester

Diagnostic command line client that makes a single connection attempt and
explains what went wrong when it fails.
"""

__version__ = "0.1.0"

from .config import Config, ConnectionRequest
from .connection import ExecutionContext, MongoConnection, TypeMode
from .exceptions import ConnectError, ConnectivityError, ParseError, ResolveError, SetupError
from .odbc_uri import ClientOptions, ParseContext, parse

__all__ = [
    "ClientOptions",
    "Config",
    "ConnectError",
    "ConnectionRequest",
    "ConnectivityError",
    "ExecutionContext",
    "MongoConnection",
    "ParseContext",
    "ParseError",
    "ResolveError",
    "SetupError",
    "TypeMode",
    "parse",
]
