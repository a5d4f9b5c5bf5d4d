"""Storage providers for contexts, projects and sprints."""

from .base import StorageProvider
from .markdown import MarkdownStorage
from .memory import InMemoryStorage

__all__ = ["InMemoryStorage", "MarkdownStorage", "StorageProvider"]
