"""
Image and audio renderers.

The artifact is a small JSON record describing the media file. The tag is
produced per directive, so two references to one image may use different
alt text without re-reading the file.
"""

import html
import json
import mimetypes
import posixpath
from typing import Any

from composition.core.renderers.base import RenderContext, Renderer
from composition.models.render import RenderResult
from composition.models.resource import ResourceKind
from composition.utils.exceptions import RendererError

_AUDIO_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
}


def _media_type(location: str, suffix: str, fallback: str) -> str:
    guessed, _ = mimetypes.guess_type(location.split("?", 1)[0])
    return _AUDIO_TYPES.get(suffix) or guessed or fallback


def _load_record(content: str) -> dict[str, Any]:
    try:
        record = json.loads(content)
    except json.JSONDecodeError as e:
        raise RendererError(f"Invalid media artifact: {e}") from e
    if not isinstance(record, dict) or "src" not in record:
        raise RendererError("Media artifact has no src")
    return record


class MediaRenderer(Renderer):
    """Shared loading for binary media resources."""

    fallback_type = "application/octet-stream"

    async def render(self, context: RenderContext) -> RenderResult:
        rid = context.node.id
        data = await context.session.load(rid)
        record = {
            "src": rid.location,
            "media_type": _media_type(rid.location, rid.suffix, self.fallback_type),
            "bytes": len(data),
        }
        return context.result(json.dumps(record, sort_keys=True))


class ImageRenderer(MediaRenderer):
    kind = ResourceKind.IMAGE
    fallback_type = "image/png"

    def present(self, content: str, options: dict[str, Any]) -> str:
        record = _load_record(content)
        alt = options.get("alt") or posixpath.basename(record["src"].split("?", 1)[0])
        return f'<img src="{html.escape(record["src"])}" alt="{html.escape(alt)}">'


class AudioRenderer(MediaRenderer):
    kind = ResourceKind.AUDIO
    fallback_type = "audio/mpeg"

    def present(self, content: str, options: dict[str, Any]) -> str:
        record = _load_record(content)
        src = html.escape(record["src"])
        media_type = html.escape(record.get("media_type", self.fallback_type))
        name = options.get("name") or posixpath.basename(record["src"].split("?", 1)[0])
        return (
            '<div class="audio-player">'
            '<audio controls preload="metadata">'
            f'<source src="{src}" type="{media_type}">'
            "Your browser does not support the audio element."
            "</audio>"
            '<div class="audio-info">'
            f'<span class="audio-name">{html.escape(name)}</span>'
            "</div>"
            "</div>"
        )
