"""
Line-oriented parser for DarkMatter documents.

A document may start with a `---` delimited YAML frontmatter block. After
that, any line whose first non-blank characters are `::<name>` with a known
name is a directive; everything else is plain text and passes through
untouched. Lines inside fenced code blocks are never directives.

Supported directives:
    ::file <ref>[!|?] [cache:<dur>] [start-end]
    ::summarize <ref>
    ::consolidate <ref> <ref> ...
    ::topic "<topic>" <ref> ... [--review]
    ::table <ref> [--with-heading-row]
    ::bar-chart|line-chart|pie-chart|area-chart|bubble-chart <ref>
    ::audio <ref> ["name"]
    ::image <ref> [alt text]
    ::embed <ref>
"""

import re
import shlex
from typing import Any

import yaml

from composition.core.parser.base import DocumentParser
from composition.core.resources.identifier import parse_reference
from composition.models.document import (
    Directive,
    DirectiveKind,
    ParsedDocument,
    Segment,
    SourcePosition,
)
from composition.models.resource import Reference, ResourceId
from composition.utils.exceptions import ParseError
from composition.utils.logger import get_logger

logger = get_logger(__name__)

_DIRECTIVE_LINE = re.compile(r"^(\s*)::([a-z][a-z-]*)(?:\s+(.*))?$")
_LINE_RANGE = re.compile(r"^(\d+)(?:-(\d*))?$")
_FENCE = re.compile(r"^\s*(```|~~~)")

CHART_TYPES = ("bar-chart", "line-chart", "pie-chart", "area-chart", "bubble-chart")

_SIMPLE_KINDS = {
    "file": DirectiveKind.FILE,
    "summarize": DirectiveKind.SUMMARIZE,
    "consolidate": DirectiveKind.CONSOLIDATE,
    "topic": DirectiveKind.TOPIC,
    "table": DirectiveKind.TABLE,
    "audio": DirectiveKind.AUDIO,
    "image": DirectiveKind.IMAGE,
    "embed": DirectiveKind.EMBED,
}


def split_frontmatter(content: str) -> tuple[dict[str, Any], str, int]:
    """
    Separate a leading YAML frontmatter block from the body.

    Returns:
        (frontmatter, body, number of lines consumed by the block)

    Raises:
        ParseError: If the YAML is invalid or not a mapping
    """
    lines = content.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != "---":
        return {}, content, 0

    for index in range(1, len(lines)):
        if lines[index].rstrip("\r\n") == "---":
            block = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            try:
                data = yaml.safe_load(block) if block.strip() else {}
            except yaml.YAMLError as e:
                raise ParseError(f"Invalid frontmatter: {e}") from e
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise ParseError("Frontmatter must be a mapping")
            return data, body, index + 1

    # No closing delimiter: treat the whole thing as body
    return {}, content, 0


class DarkMatterParser(DocumentParser):
    """Default parser for DarkMatter directive syntax."""

    def parse(self, content: str, resource_id: ResourceId | None = None) -> ParsedDocument:
        frontmatter, body, offset = split_frontmatter(content)

        directives: list[Directive] = []
        segments: list[Segment] = []
        text_buffer: list[str] = []
        in_fence = False

        def flush_text() -> None:
            if text_buffer:
                segments.append(Segment(text="".join(text_buffer)))
                text_buffer.clear()

        for number, raw_line in enumerate(body.splitlines(keepends=True), start=offset + 1):
            line = raw_line.rstrip("\r\n")
            ending = raw_line[len(line) :]

            if _FENCE.match(line):
                in_fence = not in_fence
                text_buffer.append(raw_line)
                continue

            directive = None if in_fence else self._parse_line(line, number, resource_id)
            if directive is None:
                text_buffer.append(raw_line)
                continue

            flush_text()
            segments.append(Segment(directive_index=len(directives), line_ending=ending))
            directives.append(directive)

        flush_text()
        return ParsedDocument(
            resource_id=resource_id,
            frontmatter=frontmatter,
            directives=directives,
            segments=segments,
        )

    def _parse_line(
        self, line: str, number: int, resource_id: ResourceId | None
    ) -> Directive | None:
        match = _DIRECTIVE_LINE.match(line)
        if not match:
            return None
        indent, name, rest = match.group(1), match.group(2), (match.group(3) or "").strip()
        if name not in _SIMPLE_KINDS and name not in CHART_TYPES:
            return None

        position = SourcePosition(line=number, column=len(indent) + 1)
        try:
            tokens = shlex.split(rest)
        except ValueError as e:
            raise self._error(f"Unbalanced quotes in ::{name}", number, line, resource_id) from e

        try:
            if name in CHART_TYPES:
                return self._chart(name, tokens, position)
            handler = getattr(self, f"_{name}")
            return handler(tokens, position)
        except ParseError as e:
            raise self._error(e.message, number, line, resource_id) from e

    @staticmethod
    def _error(message: str, number: int, line: str, resource_id: ResourceId | None) -> ParseError:
        return ParseError(
            f"{message} (line {number})",
            context={"line": number, "directive": line.strip(), "resource_id": str(resource_id)},
        )

    # ═══════════════════════════════════════════════════════════
    # DIRECTIVES
    # ═══════════════════════════════════════════════════════════

    @staticmethod
    def _references(tokens: list[str]) -> list[Reference]:
        """Parse reference tokens, attaching `cache:<dur>` to the preceding one."""
        references: list[Reference] = []
        for token in tokens:
            if token.startswith("cache:"):
                if not references:
                    raise ParseError(f"{token} must follow a reference")
                previous = references.pop()
                references.append(parse_reference(f"{previous} {token}"))
            else:
                references.append(parse_reference(token))
        return references

    def _file(self, tokens: list[str], position: SourcePosition) -> Directive:
        if not tokens:
            raise ParseError("::file requires a reference")
        options: dict[str, Any] = {}
        if len(tokens) > 1 and _LINE_RANGE.match(tokens[-1]):
            range_match = _LINE_RANGE.match(tokens.pop())
            start = int(range_match.group(1))
            end = int(range_match.group(2)) if range_match.group(2) else None
            if start < 1 or (end is not None and end < start):
                raise ParseError(f"Invalid line range {start}-{end}")
            options["lines"] = [start, end]
        references = self._references(tokens)
        if len(references) != 1:
            raise ParseError("::file takes exactly one reference")
        return Directive(
            kind=DirectiveKind.FILE, references=references, options=options, position=position
        )

    def _summarize(self, tokens: list[str], position: SourcePosition) -> Directive:
        references = self._references(tokens)
        if len(references) != 1:
            raise ParseError("::summarize takes exactly one reference")
        return Directive(kind=DirectiveKind.SUMMARIZE, references=references, position=position)

    def _consolidate(self, tokens: list[str], position: SourcePosition) -> Directive:
        references = self._references(tokens)
        if not references:
            raise ParseError("::consolidate requires at least one reference")
        return Directive(kind=DirectiveKind.CONSOLIDATE, references=references, position=position)

    def _topic(self, tokens: list[str], position: SourcePosition) -> Directive:
        review = "--review" in tokens
        tokens = [t for t in tokens if t != "--review"]
        if len(tokens) < 2:
            raise ParseError('::topic requires a "topic" and at least one reference')
        topic, refs = tokens[0], tokens[1:]
        return Directive(
            kind=DirectiveKind.TOPIC,
            references=self._references(refs),
            options={"topic": topic, "review": review},
            position=position,
        )

    def _table(self, tokens: list[str], position: SourcePosition) -> Directive:
        has_heading = "--with-heading-row" in tokens
        tokens = [t for t in tokens if t != "--with-heading-row"]
        references = self._references(tokens)
        if len(references) != 1:
            raise ParseError("::table takes exactly one data file reference")
        return Directive(
            kind=DirectiveKind.TABLE,
            references=references,
            options={"has_heading": has_heading},
            position=position,
        )

    def _chart(self, name: str, tokens: list[str], position: SourcePosition) -> Directive:
        references = self._references(tokens)
        if len(references) != 1:
            raise ParseError(f"::{name} takes exactly one data file reference")
        return Directive(
            kind=DirectiveKind.CHART,
            references=references,
            options={"chart": name.removesuffix("-chart")},
            position=position,
        )

    def _audio(self, tokens: list[str], position: SourcePosition) -> Directive:
        if not tokens:
            raise ParseError("::audio requires a reference")
        options = {"name": " ".join(tokens[1:])} if len(tokens) > 1 else {}
        return Directive(
            kind=DirectiveKind.AUDIO,
            references=self._references(tokens[:1]),
            options=options,
            position=position,
        )

    def _image(self, tokens: list[str], position: SourcePosition) -> Directive:
        if not tokens:
            raise ParseError("::image requires a reference")
        options = {"alt": " ".join(tokens[1:])} if len(tokens) > 1 else {}
        return Directive(
            kind=DirectiveKind.IMAGE,
            references=self._references(tokens[:1]),
            options=options,
            position=position,
        )

    def _embed(self, tokens: list[str], position: SourcePosition) -> Directive:
        references = self._references(tokens)
        if len(references) != 1:
            raise ParseError("::embed takes exactly one reference")
        return Directive(kind=DirectiveKind.EMBED, references=references, position=position)
