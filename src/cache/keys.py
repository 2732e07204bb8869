# src/cache/keys.py - v2
"""Versioned cache key codec.

Keys are colon-joined text::

    v1:{entity_type}:{origin}:{segment}[:{segment}]

The origin is a short, readable alias of the registry URL (lossy for long
host/path segments). Every other segment is the lowercase hex of its UTF-8
bytes, which keeps keys safe for every storage backend and fully reversible.

Because a packument key is a pure function of (origin, name), the key of a
matching record on another origin can be computed without any index. The
join engine relies on this.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel

from alldocs.core.errors import InvalidKeyFormat, UnknownKeyType

CACHE_KEY_VERSION = "v1"

EntityType = Literal["packument", "partition"]
ENTITY_TYPES: tuple[str, ...] = ("packument", "partition")

DEFAULT_PACKUMENT_ORIGIN = "https://registry.npmjs.com"
DEFAULT_PARTITION_ORIGIN = "https://replicate.npmjs.com"

DEFAULT_REGISTRY_ALIASES: frozenset[str] = frozenset(
    {"registry.npmjs.com", "registry.npmjs.org", "replicate.npmjs.com"}
)

NPM_ORIGIN = "npm"

_DEFAULT_PORTS = {"https": 443, "http": 80}
_SEGMENTS_PER_TYPE = {"packument": 1, "partition": 2}

# host token: one or more labels; path and port tokens never hold ":" or "~"
_READABLE_ORIGIN = re.compile(r"^(?:http~)?[a-z0-9-]+(?:\.[a-z0-9-]+)*(?:~[^~:]+)*$")
_HOST_UNSAFE = re.compile(r"[^a-z0-9-]")
_TOKEN_UNSAFE = re.compile(r"[~:]")


class DecodedKey(BaseModel):
    """Components recovered from a cache key."""

    version: str
    entity_type: EntityType
    origin: str
    origin_key: str
    name: str | None = None
    start_key: str | None = None
    end_key: str | None = None


def truncate_segment(segment: str) -> str:
    """Keep short segments whole, otherwise first 3 + last 2 characters."""
    if len(segment) <= 5:
        return segment
    return segment[:3] + segment[-2:]


def encode_segment(segment: str | None) -> str:
    """Encode an identifier segment as lowercase hex of its UTF-8 bytes."""
    if not segment:
        return ""
    return segment.encode("utf-8").hex()


def decode_segment(hex_segment: str) -> str:
    """Decode a hex segment back to text.

    Raises:
        InvalidKeyFormat: If the segment is not valid hex-encoded UTF-8.
    """
    if not hex_segment:
        return ""
    try:
        return bytes.fromhex(hex_segment).decode("utf-8")
    except ValueError as e:
        raise InvalidKeyFormat(f"Invalid key segment: {hex_segment!r}") from e


@dataclass(frozen=True)
class KeyCodec:
    """Cache key codec bound to an immutable set of registry aliases.

    Args:
        aliases: Hostnames that collapse to the ``npm`` origin.
        canonical_url: URL returned when decoding the ``npm`` origin.
    """

    aliases: frozenset[str] = DEFAULT_REGISTRY_ALIASES
    canonical_url: str = DEFAULT_PACKUMENT_ORIGIN

    # --- Origins ---

    def encode_origin(self, origin: str) -> str:
        """Encode a registry URL (or bare host) into a short origin key.

        Characters that would break the key layout (``:`` and ``~`` in path
        segments, anything outside ``[a-z0-9-]`` in host labels) are replaced
        before truncation, so the result is always a valid readable origin.
        """
        origin = origin.strip()
        if "://" not in origin and "~" in origin and _READABLE_ORIGIN.match(origin):
            return origin

        parts = urlsplit(origin if "://" in origin else f"https://{origin}")
        scheme = parts.scheme.lower()
        host = (parts.hostname or "").lower()
        port = parts.port
        default_port = port is None or port == _DEFAULT_PORTS.get(scheme)
        path_segments = [s for s in parts.path.split("/") if s]

        if host in self.aliases and default_port and not path_segments:
            return NPM_ORIGIN

        host_part = ".".join(
            truncate_segment(_HOST_UNSAFE.sub("-", s)) for s in host.split(".")
        )
        tokens: list[str] = []
        if scheme == "http":
            tokens.append("http")
        tokens.append(host_part)
        if not default_port:
            tokens.append(str(port))
        tokens.extend(truncate_segment(_TOKEN_UNSAFE.sub("_", s)) for s in path_segments)
        return "~".join(tokens)

    def decode_origin(self, origin_key: str) -> str:
        """Best-effort reconstruction of the URL behind an origin key.

        Long segments were truncated on encode, so the result is plausible
        rather than original. Keys matching neither the ``npm`` alias nor
        the readable form come back tagged as ``<legacy:...>``.
        """
        if origin_key == NPM_ORIGIN:
            return self.canonical_url
        if not _READABLE_ORIGIN.match(origin_key):
            return f"<legacy:{origin_key}>"

        tokens = origin_key.split("~")
        scheme = "https"
        if tokens[0] == "http":
            scheme = "http"
            tokens = tokens[1:]
        host, rest = tokens[0], tokens[1:]
        if rest and rest[0].isdigit():
            host = f"{host}:{rest[0]}"
            rest = rest[1:]
        path = "/".join(rest)
        return f"{scheme}://{host}/{path}" if path else f"{scheme}://{host}"

    # --- Keys ---

    def packument_key(self, name: str, origin: str = DEFAULT_PACKUMENT_ORIGIN) -> str:
        """Key for a packument fetched from ``origin`` (a URL)."""
        return packument_key_for_origin(name, self.encode_origin(origin))

    def partition_key(
        self,
        start_key: str,
        end_key: str,
        origin: str = DEFAULT_PARTITION_ORIGIN,
    ) -> str:
        """Key for the listing partition ``[start_key, end_key)``."""
        return render_key(
            "partition",
            self.encode_origin(origin),
            encode_segment(start_key),
            encode_segment(end_key),
        )

    def create_key(
        self,
        entity_type: str,
        *,
        origin: str | None = None,
        name: str | None = None,
        start_key: str | None = None,
        end_key: str | None = None,
    ) -> str:
        """Dispatch on entity type.

        Raises:
            UnknownKeyType: If ``entity_type`` is not a known entity.
        """
        if entity_type == "packument":
            return self.packument_key(name or "", origin or DEFAULT_PACKUMENT_ORIGIN)
        if entity_type == "partition":
            return self.partition_key(
                start_key or "", end_key or "", origin or DEFAULT_PARTITION_ORIGIN
            )
        raise UnknownKeyType(f"Unknown cache key type: {entity_type}")

    def decode_key(self, cache_key: str) -> DecodedKey:
        """Split a cache key back into its components.

        Raises:
            InvalidKeyFormat: Fewer than 4 parts, bad version, wrong segment
                count or non-hex segments.
            UnknownKeyType: Unrecognized entity type token.
        """
        parts = cache_key.split(":")
        if len(parts) < 4:
            raise InvalidKeyFormat(f"Invalid cache key format: {cache_key}")

        version, entity_type, origin_key, *segments = parts
        if not re.fullmatch(r"v\d+", version):
            raise InvalidKeyFormat(f"Invalid cache key version: {cache_key}")
        if entity_type not in _SEGMENTS_PER_TYPE:
            raise UnknownKeyType(f"Unknown cache key type: {entity_type}")
        if len(segments) != _SEGMENTS_PER_TYPE[entity_type]:
            raise InvalidKeyFormat(
                f"Expected {_SEGMENTS_PER_TYPE[entity_type]} segment(s) for "
                f"{entity_type} key: {cache_key}"
            )

        decoded = DecodedKey(
            version=version,
            entity_type=entity_type,  # type: ignore[arg-type]
            origin=self.decode_origin(origin_key),
            origin_key=origin_key,
        )
        if entity_type == "packument":
            decoded.name = decode_segment(segments[0])
        else:
            decoded.start_key = decode_segment(segments[0])
            decoded.end_key = decode_segment(segments[1])
        return decoded


def render_key(entity_type: str, origin_key: str, *hex_segments: str) -> str:
    """Join already-encoded components into a versioned key."""
    return ":".join((CACHE_KEY_VERSION, entity_type, origin_key, *hex_segments))


def packument_key_for_origin(name: str, origin_key: str) -> str:
    """Packument key from an already-encoded origin (views store encoded origins)."""
    return render_key("packument", origin_key, encode_segment(name))


def key_prefix(entity_type: str, origin_key: str) -> str:
    """Scan prefix covering every key of one entity type on one origin."""
    return f"{CACHE_KEY_VERSION}:{entity_type}:{origin_key}:"


DEFAULT_CODEC = KeyCodec()

encode_origin = DEFAULT_CODEC.encode_origin
decode_origin = DEFAULT_CODEC.decode_origin
create_key = DEFAULT_CODEC.create_key
create_packument_key = DEFAULT_CODEC.packument_key
create_partition_key = DEFAULT_CODEC.partition_key
decode_key = DEFAULT_CODEC.decode_key
