"""Shared test fixtures for the mch test suite.

Design:
- storage / hierarchy: in-memory backend, fresh per test
- FakeEmbedder: deterministic vectors keyed by text, optional failure mode
- tmp_store: isolated markdown store via MCH_STORE_ROOT / MCH_CONFIG_DIR
- cli_services: CLI wired to the isolated store and a fake embedder
- Async tests use @pytest.mark.asyncio
"""

import importlib.util
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from mch import core
from mch.config import CoreConfig
from mch.hierarchy import HierarchyService
from mch.models import Context
from mch.related_links import RelatedLinksBuilder
from mch.storage import InMemoryStorage, MarkdownStorage


# ─────────────────────────────────────────────────────────────────────────────
# Markers
# ─────────────────────────────────────────────────────────────────────────────


def _semantic_deps_available() -> bool:
    return importlib.util.find_spec("sentence_transformers") is not None


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if _semantic_deps_available():
        return

    skip_semantic = pytest.mark.skip(
        reason="semantic extra not installed; install with `pip install -e '.[semantic]'` to run these tests"
    )
    for item in items:
        if "semantic" in item.keywords:
            item.add_marker(skip_semantic)


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────


class FakeEmbedder:
    """Embedding provider returning fixed vectors.

    Texts found in `vectors` get that vector; any other text gets
    `default` (None means "raise"). `fail=True` makes every call raise.
    """

    model_name = "fake-model"

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        fail: bool = False,
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = default
        self.fail = fail
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding backend offline")
        if text in self.vectors:
            return self.vectors[text]
        if self.default is None:
            raise RuntimeError(f"no vector for {text!r}")
        return self.default

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def make_context(
    content: str = "note",
    embedding: list[float] | None = None,
    minutes: int = 0,
    **fields,
) -> Context:
    """Context with a deterministic created_at (BASE_TIME + minutes)."""
    created = BASE_TIME + timedelta(minutes=minutes)
    return Context(content=content, embedding=embedding, created_at=created, updated_at=created, **fields)


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def hierarchy(storage: InMemoryStorage) -> HierarchyService:
    return HierarchyService(storage)


@pytest.fixture
def linker() -> RelatedLinksBuilder:
    return RelatedLinksBuilder(CoreConfig())


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def tmp_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Isolated store root and config dir.

    Sets MCH_STORE_ROOT and MCH_CONFIG_DIR to temp directories and clears the
    cached services before and after the test.
    """
    store_root = tmp_path / "store"
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("MCH_STORE_ROOT", str(store_root))
    monkeypatch.setenv("MCH_CONFIG_DIR", str(config_dir))
    for var in ("MCH_SIMILARITY_THRESHOLD", "MCH_MAX_RELATED_LINKS", "MCH_EMBEDDING_MODEL", "MCH_STORAGE"):
        monkeypatch.delenv(var, raising=False)

    core.reset_services()
    yield store_root
    core.reset_services()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder(default=[1.0, 0.0, 0.0])


@pytest.fixture
def cli_services(tmp_store: Path, fake_embedder: FakeEmbedder) -> core.Services:
    """Services used by CLI commands: markdown store in tmp_store, fake embedder."""
    services = core.build_services(
        CoreConfig(store_root=tmp_store),
        storage=MarkdownStorage(tmp_store),
        embedder=fake_embedder,
    )
    core._services = services
    return services
