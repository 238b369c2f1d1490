"""
Shared fixtures for composition engine tests.

Everything runs in-process:
- Local documents are written under `tmp_path`
- Remote resources are served by an httpx.MockTransport
- LLM and embedder providers are in-memory fakes
- Renderer invocations are counted per kind
"""

import asyncio
from collections import Counter
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest

from composition.config import Config, EngineConfig
from composition.core.embeddings.base import Embedder
from composition.core.graph_store.memory_store import InMemoryGraphStore
from composition.core.llm.base import LLMProvider
from composition.core.parser.darkmatter import DarkMatterParser
from composition.core.renderers import default_registry
from composition.core.renderers.base import RenderContext, Renderer, RendererRegistry
from composition.core.resources.loader import ResourceLoader
from composition.core.resources.session import RenderSession
from composition.models.render import RenderResult
from composition.services.engine import CompositionEngine

# Fakes


class FakeLLM(LLMProvider):
    """Deterministic LLM that records every prompt."""

    def __init__(self, model: str = "fake-llm"):
        self.model = model
        self.prompts: list[str] = []

    async def complete(
        self, prompt: str, max_tokens: int = 2000, temperature: float = 0.0, **kwargs
    ) -> str:
        self.prompts.append(prompt)
        return f"Generated by {self.model} from {len(prompt)} characters."

    async def close(self):
        pass


class FakeEmbedder(Embedder):
    """Embeds text as (length, word count, 1.0)."""

    def __init__(self, model: str = "fake-embed"):
        self.model = model
        self.calls = 0

    async def embed(self, text: str, **kwargs) -> list[float]:
        self.calls += 1
        return [float(len(text)), float(len(text.split())), 1.0]

    async def close(self):
        pass


class CountingRenderer(Renderer):
    """Delegates to another renderer and counts render calls per kind."""

    def __init__(self, inner: Renderer, calls: Counter):
        self.inner = inner
        self.kind = inner.kind
        self.uses_state = inner.uses_state
        self.calls = calls

    def cache_key(self) -> str:
        return self.inner.cache_key()

    async def render(self, context: RenderContext) -> RenderResult:
        self.calls[self.kind.value] += 1
        return await self.inner.render(context)

    def present(self, content, options):
        return self.inner.present(content, options)


class RemoteSite:
    """
    Fake HTTP origin for MockTransport.

    `pages` maps URL path to body; unknown paths answer 404. Setting
    `offline` makes every request fail with a connection error.
    """

    def __init__(self, delay: float = 0.0):
        self.pages: dict[str, bytes] = {}
        self.fetches: Counter = Counter()
        self.offline = False
        self.delay = delay

    def add(self, path: str, body: str | bytes) -> str:
        self.pages[path] = body.encode("utf-8") if isinstance(body, str) else body
        return f"https://example.com{path}"

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.fetches[request.url.path] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)
        body = self.pages.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body)


# Fixtures


@pytest.fixture
def render_calls() -> Counter:
    return Counter()


@pytest.fixture
def site() -> RemoteSite:
    return RemoteSite(delay=0.05)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def memory_store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    return Config(engine=EngineConfig(workers=4, render_timeout=5.0, base_dir=str(tmp_path)))


@pytest.fixture
def registry(fake_llm, fake_embedder, render_calls) -> RendererRegistry:
    base = default_registry(DarkMatterParser(), fake_llm, fake_embedder)
    return RendererRegistry(
        [CountingRenderer(base.get(kind), render_calls) for kind in list(base._renderers)]
    )


@pytest.fixture
async def engine(test_config, memory_store, registry, site) -> AsyncGenerator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(site.handler))
    engine = CompositionEngine(
        config=test_config,
        store=memory_store,
        registry=registry,
        loader=ResourceLoader(http_client=client),
    )
    await engine.initialize()
    try:
        yield engine
    finally:
        await engine.close()
        await client.aclose()


@pytest.fixture
def write(tmp_path: Path):
    """Write a file under tmp_path and return its path as a string."""

    def _write(name: str, content: str | bytes) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
async def loader(site) -> AsyncGenerator:
    """ResourceLoader whose remote fetches hit the fake site."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(site.handler))
    yield ResourceLoader(http_client=client)
    await client.aclose()


@pytest.fixture
def session(loader) -> RenderSession:
    return RenderSession(loader)
