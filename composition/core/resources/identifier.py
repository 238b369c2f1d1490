"""
Reference parsing and resource identification.

Identification is purely lexical: relative paths are resolved against the
referencing document, dot-segments are collapsed and URLs are canonicalized.
No filesystem or network access happens here.
"""

import os
import posixpath
import re
from typing import Any
from urllib.parse import parse_qsl, unquote, urlencode, urljoin, urlsplit, urlunsplit

from composition.models.resource import (
    Reference,
    Requirement,
    ResourceId,
    ResourceKind,
    ResourceSource,
)
from composition.utils.exceptions import ParseError

_DEFAULT_PORTS = {"http": 80, "https": 443}
_DURATION_PATTERN = re.compile(r"^(\d+)([smhd])$")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def is_remote_reference(text: str) -> bool:
    return text.startswith("http://") or text.startswith("https://")


def parse_duration(text: str) -> int:
    """
    Parse a duration such as `30s`, `5m`, `2h` or `1d` into seconds.

    Raises:
        ParseError: If the number or unit is invalid
    """
    value = text.strip()
    if not value:
        raise ParseError("Empty duration")
    match = _DURATION_PATTERN.match(value)
    if not match:
        raise ParseError(f"Invalid duration: {value}", context={"duration": value})
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def parse_reference(text: str) -> Reference:
    """
    Parse a reference as written in a directive.

    A trailing `!` marks the reference required, `?` optional. An optional
    ` cache:<duration>` suffix overrides the remote TTL.

    Examples:
        >>> parse_reference("./intro.md!").requirement
        <Requirement.REQUIRED: 'required'>
        >>> parse_reference("https://example.com/a.md cache:2h").cache_ttl
        7200
    """
    target, _, cache_part = text.strip().partition(" cache:")
    target = target.strip()

    requirement = Requirement.DEFAULT
    if target.endswith("!"):
        target, requirement = target[:-1], Requirement.REQUIRED
    elif target.endswith("?"):
        target, requirement = target[:-1], Requirement.OPTIONAL

    if not target:
        raise ParseError(f"Empty reference: {text!r}")

    cache_ttl = parse_duration(cache_part) if cache_part else None
    return Reference(target=target, requirement=requirement, cache_ttl=cache_ttl)


def normalize_url(url: str) -> str:
    """
    Canonical form of an http(s) URL.

    Scheme and host are lowercased, default ports and fragments dropped,
    dot-segments removed and query parameters sorted.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()

    host = (parts.hostname or "").lower()
    if ":" in host:  # IPv6 literal
        host = f"[{host}]"
    port = parts.port
    netloc = host
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = _remove_dot_segments(parts.path)
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def _remove_dot_segments(path: str) -> str:
    if not path:
        return "/"
    normalized = posixpath.normpath(path)
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    if path.endswith("/") and normalized != "/":
        normalized += "/"
    return normalized


def _normalize_local(path: str) -> str:
    normalized = posixpath.normpath(path.replace(os.sep, "/"))
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def identify(reference: str | Reference, base: ResourceId | str | None = None) -> ResourceId:
    """
    Produce the canonical ResourceId for a reference.

    Args:
        reference: Reference text (markers already stripped) or a Reference
        base: Referencing document, or a base directory for root references.
              Defaults to the current working directory.

    Returns:
        ResourceId whose location is the normalized path or URL
    """
    target = reference.target if isinstance(reference, Reference) else reference.strip()
    if not target:
        raise ParseError("Cannot identify an empty reference")

    if is_remote_reference(target):
        return ResourceId(source=ResourceSource.REMOTE, location=normalize_url(target))

    if target.startswith("file://"):
        path = unquote(urlsplit(target).path)
        return ResourceId(source=ResourceSource.LOCAL, location=_normalize_local(path))

    if isinstance(base, ResourceId) and base.is_remote:
        joined = urljoin(base.location, target)
        return ResourceId(source=ResourceSource.REMOTE, location=normalize_url(joined))

    if posixpath.isabs(target) or os.path.isabs(target):
        return ResourceId(source=ResourceSource.LOCAL, location=_normalize_local(target))

    if isinstance(base, ResourceId):
        directory = base.directory
    elif base is not None:
        directory = os.path.abspath(base)
    else:
        directory = os.getcwd()
    location = _normalize_local(posixpath.join(directory.replace(os.sep, "/"), target))
    return ResourceId(source=ResourceSource.LOCAL, location=location)


def derived_id(
    kind: ResourceKind,
    inputs: list[ResourceId],
    options: dict[str, Any] | None = None,
) -> ResourceId:
    """
    Identity of an AI-derived node.

    Built from the kind, the ordered input locations and the options that
    change the output (e.g. the topic), so equal requests share a node.
    """
    location = f"{kind.value}:" + ",".join(resource.location for resource in inputs)
    relevant = {k: v for k, v in (options or {}).items() if v is not None}
    if relevant:
        location += "?" + urlencode(sorted((k, str(v)) for k, v in relevant.items()))
    return ResourceId(source=ResourceSource.DERIVED, location=location)
