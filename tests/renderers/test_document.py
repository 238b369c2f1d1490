"""
Tests for the document renderer and the registry.
"""

import pytest

from composition.core.parser.darkmatter import DarkMatterParser
from composition.core.renderers import default_registry
from composition.core.renderers.base import RendererRegistry
from composition.core.renderers.document import select_lines
from composition.core.renderers.media import ImageRenderer
from composition.core.resources.identifier import identify
from composition.models.graph import DependencyEdge, ResourceNode
from composition.models.resource import ResourceKind
from composition.utils.exceptions import RendererError


@pytest.mark.unit
class TestSelectLines:
    """Test line range selection."""

    def test_inclusive_range(self):
        assert select_lines("a\nb\nc\nd\n", 2, 3) == "b\nc\n"

    def test_open_ended(self):
        assert select_lines("a\nb\nc", 2) == "b\nc"

    def test_past_the_end(self):
        assert select_lines("a\n", 5, 9) == ""

    def test_present_uses_lines_option(self, renderers):
        renderer = renderers.get(ResourceKind.DOCUMENT)
        assert renderer.present("a\nb\nc\n", {"lines": [2, None]}) == "b\nc\n"
        assert renderer.present("a\nb\n", {}) == "a\nb\n"


@pytest.mark.unit
class TestRegistry:
    """Test renderer lookup."""

    def test_missing_kind(self):
        registry = RendererRegistry([ImageRenderer()])
        assert ResourceKind.IMAGE in registry
        assert not registry.has(ResourceKind.AUDIO)
        with pytest.raises(RendererError):
            registry.get(ResourceKind.AUDIO)

    def test_ai_kinds_need_providers(self, fake_llm):
        without = default_registry(DarkMatterParser())
        with_llm = default_registry(DarkMatterParser(), fake_llm)

        assert len(without) == 4
        assert ResourceKind.SUMMARY not in without
        assert with_llm.uses_state(ResourceKind.SUMMARY)
        assert with_llm.cache_key(ResourceKind.TOPIC) == "fake-llm"
        assert not with_llm.uses_state(ResourceKind.DOCUMENT)
        assert ResourceKind.EMBEDDING not in with_llm

    def test_empty_content_presents_nothing(self, renderers):
        assert renderers.present(ResourceKind.IMAGE, "", {"alt": "x"}) == ""


@pytest.mark.unit
@pytest.mark.asyncio
class TestDocumentRenderer:
    """Test assembly of a document from dependency contents."""

    async def test_substitutes_each_slot(self, make_context, write, tmp_path, renderers):
        path = write(
            "page.md",
            "# Page\n::file part.md 2-2\n::image logo.png Logo\n::file gone.md?\nend\n",
        )
        part = identify(str(tmp_path / "part.md"))
        logo = identify(str(tmp_path / "logo.png"))
        gone = identify(str(tmp_path / "gone.md"))
        node = ResourceNode(
            id=identify(path),
            kind=ResourceKind.DOCUMENT,
            dependencies=[
                DependencyEdge(target=part, directive_index=0),
                DependencyEdge(target=logo, kind=ResourceKind.IMAGE, directive_index=1),
                DependencyEdge(target=gone, directive_index=2),
            ],
        )
        image_artifact = '{"src": "/x/logo.png", "media_type": "image/png", "bytes": 1}'

        result = await renderers.get(ResourceKind.DOCUMENT).render(
            make_context(node, {part: "one\ntwo\nthree\n", logo: image_artifact, gone: ""})
        )

        assert result.content == '# Page\ntwo\n<img src="/x/logo.png" alt="Logo">\nend\n'

    async def test_same_child_twice(self, make_context, write, tmp_path, renderers):
        path = write("twice.md", "::file part.md 1-1\n::file part.md 2-\n")
        part = identify(str(tmp_path / "part.md"))
        node = ResourceNode(
            id=identify(path),
            kind=ResourceKind.DOCUMENT,
            dependencies=[
                DependencyEdge(target=part, directive_index=0),
                DependencyEdge(target=part, directive_index=1),
            ],
        )

        result = await renderers.get(ResourceKind.DOCUMENT).render(
            make_context(node, {part: "first\nsecond\n"})
        )

        assert result.content == "first\nsecond\n"
