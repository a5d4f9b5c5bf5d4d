"""Composition root: builds the service graph from a CoreConfig.

This is the only module that picks concrete storage and embedding adapters.
Everything below it receives its collaborators through constructors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import CoreConfig, load_config
from .embeddings import EmbeddingCache, EmbeddingProvider, SentenceTransformerEmbedder, semantic_deps_available
from .embeddings.cache import CACHE_DIRNAME
from .hierarchy import HierarchyService
from .migration import ClassificationStrategy, MigrationUseCase
from .related_links import RelatedLinksBuilder
from .storage import InMemoryStorage, MarkdownStorage, StorageProvider
from .usecases import AddContextUseCase, SearchContextUseCase

log = logging.getLogger(__name__)


@dataclass
class Services:
    """The wired-up use cases and their shared collaborators."""

    config: CoreConfig
    storage: StorageProvider
    embedder: EmbeddingProvider | None
    hierarchy: HierarchyService
    linker: RelatedLinksBuilder
    add: AddContextUseCase
    search: SearchContextUseCase

    def migration(self, classifier: ClassificationStrategy) -> MigrationUseCase:
        return MigrationUseCase(self.storage, self.hierarchy, classifier, self.linker)


def _build_storage(config: CoreConfig) -> StorageProvider:
    if config.storage_backend == "memory":
        return InMemoryStorage()
    return MarkdownStorage(config.resolved_store_root())


def _build_embedder(config: CoreConfig) -> EmbeddingProvider | None:
    if not semantic_deps_available():
        log.debug("sentence-transformers not installed; contexts are stored without embeddings")
        return None
    cache = EmbeddingCache(config.embedding_model, config.resolved_store_root() / CACHE_DIRNAME)
    return SentenceTransformerEmbedder(config.embedding_model, cache=cache)


def build_services(
    config: CoreConfig,
    storage: StorageProvider | None = None,
    embedder: EmbeddingProvider | None = None,
) -> Services:
    """Wire the services for `config`.

    `storage` and `embedder` override the adapters chosen from config
    (used by tests and embedding hosts).
    """
    storage = storage if storage is not None else _build_storage(config)
    if embedder is None:
        embedder = _build_embedder(config)

    hierarchy = HierarchyService(storage)
    linker = RelatedLinksBuilder(config)
    return Services(
        config=config,
        storage=storage,
        embedder=embedder,
        hierarchy=hierarchy,
        linker=linker,
        add=AddContextUseCase(storage, embedder, hierarchy, linker),
        search=SearchContextUseCase(storage, embedder),
    )


_services: Services | None = None


def get_services() -> Services:
    """Get the process-wide services, building them on first use."""
    global _services
    if _services is None:
        _services = build_services(load_config())
    return _services


def reset_services() -> None:
    """Drop the cached services (tests, config changes)."""
    global _services
    _services = None
