"""ODBC-style connection strings mapped onto pymongo's URI parser.

A connection string is a list of ``KEY=value`` attributes separated by
``;``. Values may be wrapped in braces (``{...}``) to carry ``;`` or ``=``,
with ``}}`` standing for a literal ``}``. Keys are case-insensitive and the
first occurrence of a key wins.

Recognised attributes:

- ``URI``: a ``mongodb://`` or ``mongodb+srv://`` URI
- ``SERVER``: ``host[:port][,host[:port]...]`` when no URI is given
- ``USER``/``UID`` and ``PWD``/``PASSWORD``: the credential pair (required)
- ``DATABASE``: database selected after connecting
- ``APPNAME``: application name reported to the server
- ``DRIVER``/``DSN``: accepted and ignored

Everything below the attribute layer (URI grammar, SRV lookups, option
validation) is pymongo's job.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from bson.binary import UuidRepresentation
from pymongo.asynchronous.uri_parser import parse_uri
from pymongo.errors import ConfigurationError

from .exceptions import ErrorKind, ParseError, ResolveError

if TYPE_CHECKING:
    from .connection import ExecutionContext

logger = logging.getLogger(__name__)

PLACEHOLDER_USER = "dummy"
PLACEHOLDER_PASSWORD = "dummy"

DEFAULT_APP_NAME = "connectivity-tester"

USER_KEYS = ("USER", "UID")
PASSWORD_KEYS = ("PWD", "PASSWORD")
IGNORED_KEYS = ("DRIVER", "DSN")
SUPPORTED_KEYS = set(USER_KEYS + PASSWORD_KEYS + IGNORED_KEYS + ("URI", "SERVER", "DATABASE", "APPNAME"))

MONGODB_SCHEMES = ("mongodb://", "mongodb+srv://")

# Mechanisms that authenticate without a username/password pair
CREDENTIALLESS_MECHANISMS = {"MONGODB-X509", "MONGODB-AWS", "MONGODB-OIDC"}
USERNAME_MECHANISMS = {"SCRAM-SHA-1", "SCRAM-SHA-256", "PLAIN", "GSSAPI"}

_UUID_REPRESENTATION_NAMES = {
    UuidRepresentation.UNSPECIFIED: "unspecified",
    UuidRepresentation.STANDARD: "standard",
    UuidRepresentation.PYTHON_LEGACY: "pythonLegacy",
    UuidRepresentation.JAVA_LEGACY: "javaLegacy",
    UuidRepresentation.CSHARP_LEGACY: "csharpLegacy",
}

_ATTRIBUTE_PASSWORD_RE = re.compile(r"(?i)\b(PWD|PASSWORD)=(\{(?:[^}]|\}\})*\}|[^;]*)")
_URI_PASSWORD_RE = re.compile(r"(?i)([a-z][a-z0-9+.-]*://[^:/@;]+:)([^@;/]*)(@)")


def with_placeholder_credentials(uri: str) -> str:
    """Wrap a bare MongoDB URI into a connection string the parser accepts.

    The parser insists on a USER/PWD pair even for mechanisms that never use
    one (X.509, AWS, OIDC), so a placeholder pair is appended here and
    stripped again by ParseContext.resolve().
    """
    return f"URI={uri};USER={PLACEHOLDER_USER};PWD={PLACEHOLDER_PASSWORD}"


def mask_connection_string(connection_string: str) -> str:
    """Hide PWD attributes and URI-embedded passwords."""
    masked = _ATTRIBUTE_PASSWORD_RE.sub(lambda m: f"{m.group(1)}=***", connection_string)
    return _URI_PASSWORD_RE.sub(r"\1***\3", masked)


def split_attributes(connection_string: str) -> Dict[str, str]:
    """Split ``KEY=value;...`` into an upper-cased key map."""
    attributes: Dict[str, str] = {}
    text = connection_string
    pos = 0
    length = len(text)

    while pos < length:
        if text[pos] in "; \t":
            pos += 1
            continue

        eq = text.find("=", pos)
        semicolon = text.find(";", pos)
        if eq == -1 or -1 < semicolon < eq:
            end = length if semicolon == -1 else semicolon
            raise ParseError(
                f"Invalid connection string: attribute '{text[pos:end].strip()}' has no value",
                details={"position": pos},
            )
        key = text[pos:eq].strip().upper()
        if not key:
            raise ParseError(
                f"Invalid connection string: missing attribute name at position {pos}",
                details={"position": pos},
            )

        pos = eq + 1
        if pos < length and text[pos] == "{":
            value, pos = _read_braced(text, pos)
            while pos < length and text[pos] in " \t":
                pos += 1
            if pos < length and text[pos] != ";":
                raise ParseError(
                    f"Invalid connection string: unexpected text after braced value of {key}",
                    details={"position": pos, "attribute": key},
                )
        else:
            end = text.find(";", pos)
            if end == -1:
                end = length
            value = text[pos:end].strip()
            pos = end

        if key in attributes:
            logger.debug("Ignoring repeated attribute %s", key)
            continue
        attributes[key] = value

    return attributes


def _read_braced(text: str, start: int) -> Tuple[str, int]:
    """Read a ``{...}`` value starting at the opening brace."""
    chars: List[str] = []
    pos = start + 1
    while pos < len(text):
        char = text[pos]
        if char == "}":
            if text.startswith("}}", pos):
                chars.append("}")
                pos += 2
                continue
            return "".join(chars), pos + 1
        chars.append(char)
        pos += 1
    raise ParseError(
        "Invalid connection string: unterminated '{' in attribute value",
        details={"position": start},
    )


def _first_of(attributes: Dict[str, str], keys: Tuple[str, ...]) -> Optional[str]:
    for key in keys:
        if key in attributes:
            return attributes[key]
    return None


def _uri_option(options: Dict[str, Any], name: str) -> Any:
    """Look up a parsed URI option by name, ignoring case.

    pymongo lower-cases some option keys (``uuidrepresentation``) and keeps
    the camel case of others (``authSource``).
    """
    if name in options:
        return options[name]
    lowered = name.lower()
    for key, value in options.items():
        if key.lower() == lowered:
            return value
    return None


@dataclass
class ClientOptions:
    """Fully resolved options handed to the MongoDB client."""

    uri: str
    hosts: List[str]
    username: Optional[str] = None
    password: Optional[str] = None
    auth_mechanism: Optional[str] = None
    auth_source: Optional[str] = None
    tls: bool = False
    database: Optional[str] = None
    uuid_representation: Optional[str] = None
    app_name: str = DEFAULT_APP_NAME
    options: Dict[str, Any] = field(default_factory=dict)

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments layered over the URI when building the client."""
        kwargs: Dict[str, Any] = {"appname": self.app_name}
        if self.username is not None:
            kwargs["username"] = self.username
        if self.password is not None:
            kwargs["password"] = self.password
        return kwargs


@dataclass
class ParseContext:
    """Attributes of a parsed connection string, not yet resolved."""

    attributes: Dict[str, str]
    user: str
    password: str
    uri: Optional[str] = None
    server: Optional[str] = None
    database: Optional[str] = None

    @property
    def has_placeholder_credentials(self) -> bool:
        return self.user == PLACEHOLDER_USER and self.password == PLACEHOLDER_PASSWORD

    @property
    def mongodb_uri(self) -> str:
        if self.uri:
            return self.uri
        return f"mongodb://{self.server}/"

    def resolve(self, context: "ExecutionContext") -> ClientOptions:
        """Resolve into client options on the given execution context.

        SRV records are looked up here, so this may touch the network.
        TLS certificate files named in the URI must be readable.

        Raises:
            ResolveError: If the URI is invalid, a TLS file cannot be read,
                or a mechanism is missing a field it needs
        """
        return context.run(self._resolve())

    async def _resolve(self) -> ClientOptions:
        try:
            parsed = await parse_uri(self.mongodb_uri)
        except (ConfigurationError, ValueError) as exc:
            raise ResolveError.from_exception(exc) from exc
        except OSError as exc:
            # tlsCAFile, tlsCertificateKeyFile and tlsCRLFile are opened here
            raise ResolveError.from_exception(exc, kind=ErrorKind.TLS) from exc

        options = parsed["options"]
        mechanism = _uri_option(options, "authMechanism")
        username, password = self._credentials(parsed, mechanism)

        if mechanism in USERNAME_MECHANISMS and not username:
            raise ResolveError(
                f"authMechanism {mechanism} requires a username",
                details={"auth_mechanism": mechanism},
            )

        hosts = [f"{host}:{port}" for host, port in parsed["nodelist"]]
        logger.debug("Resolved %d host(s) from %s", len(hosts), mask_connection_string(self.mongodb_uri))

        return ClientOptions(
            uri=self.mongodb_uri,
            hosts=hosts,
            username=username,
            password=password,
            auth_mechanism=mechanism,
            auth_source=_uri_option(options, "authSource"),
            tls=bool(_uri_option(options, "tls")),
            database=self.database or parsed["database"],
            uuid_representation=self._uuid_representation(_uri_option(options, "uuidRepresentation")),
            app_name=self.attributes.get("APPNAME") or DEFAULT_APP_NAME,
            options=dict(options),
        )

    def _credentials(self, parsed: Dict[str, Any], mechanism: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        """Pick the credential pair the client should use.

        Credentials embedded in the URI win; the USER/PWD pair is dropped for
        mechanisms that do not use it and when it is the placeholder pair.
        """
        if parsed.get("username") is not None:
            return parsed["username"], parsed.get("password")
        if mechanism in CREDENTIALLESS_MECHANISMS or self.has_placeholder_credentials:
            return None, None
        return self.user, self.password

    @staticmethod
    def _uuid_representation(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, int):
            return _UUID_REPRESENTATION_NAMES.get(value, str(value))
        return str(value)


def parse(connection_string: str) -> ParseContext:
    """Parse an ODBC-style connection string.

    Raises:
        ParseError: If the attribute syntax is broken, the credential pair is
            missing, or neither URI nor SERVER names a deployment
    """
    attributes = split_attributes(connection_string)

    for key in attributes:
        if key not in SUPPORTED_KEYS:
            logger.debug("Ignoring unsupported attribute %s", key)

    user = _first_of(attributes, USER_KEYS)
    password = _first_of(attributes, PASSWORD_KEYS)
    if user is None or password is None:
        raise ParseError(
            "Invalid connection string: USER (or UID) and PWD (or PASSWORD) are required",
            details={"missing_fields": [
                name for name, value in (("USER", user), ("PWD", password)) if value is None
            ]},
        )

    uri = attributes.get("URI") or None
    server = attributes.get("SERVER") or None
    if uri is None and server is None:
        raise ParseError(
            "Invalid connection string: either URI or SERVER is required",
            details={"missing_fields": ["URI", "SERVER"]},
        )
    if uri is not None and not uri.startswith(MONGODB_SCHEMES):
        raise ParseError(
            f"Invalid URI '{mask_connection_string(uri)}': scheme must be mongodb:// or mongodb+srv://",
            details={"attribute": "URI"},
        )

    return ParseContext(
        attributes=attributes,
        user=user,
        password=password,
        uri=uri,
        server=server,
        database=attributes.get("DATABASE") or None,
    )


__all__ = [
    "ClientOptions",
    "ParseContext",
    "PLACEHOLDER_PASSWORD",
    "PLACEHOLDER_USER",
    "mask_connection_string",
    "parse",
    "split_attributes",
    "with_placeholder_credentials",
]
