"""Resource identification, loading and hashing."""

from composition.core.resources.gitignore import GitignoreFilter, find_project_root
from composition.core.resources.hasher import ContentHasher, content_hash
from composition.core.resources.identifier import (
    derived_id,
    identify,
    is_remote_reference,
    normalize_url,
    parse_duration,
    parse_reference,
)
from composition.core.resources.loader import ResourceLoader
from composition.core.resources.session import RenderSession

__all__ = [
    "ContentHasher",
    "GitignoreFilter",
    "RenderSession",
    "ResourceLoader",
    "content_hash",
    "derived_id",
    "find_project_root",
    "identify",
    "is_remote_reference",
    "normalize_url",
    "parse_duration",
    "parse_reference",
]
