"""Configuration management for mch.

This module contains all configurable constants for the context hub.
Magic numbers are documented here rather than scattered throughout the codebase.

Components never read this module's globals at call time: a ``CoreConfig``
value is built once (``load_config``) and passed into each service at
construction.
"""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError

# =============================================================================
# Related Links
# =============================================================================

# Minimum cosine similarity for a stored context to be linked to a new one.
# 0.6 keeps links to entries that are clearly on the same topic while
# ignoring incidental vocabulary overlap.
SIMILARITY_THRESHOLD = 0.6

# Maximum number of related links attached to a new context
MAX_RELATED_LINKS = 5


# =============================================================================
# Embedding Model
# =============================================================================

# Sentence-transformers model for semantic embeddings.
# Produces 384-dimensional embeddings; every vector in a store must come from
# the same model, since vectors of mismatched length are never compared.
EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

# Number of texts encoded per batch by the sentence-transformers adapter
EMBEDDING_BATCH_SIZE = 32


# =============================================================================
# Search Limits
# =============================================================================

# Default number of results returned by search
DEFAULT_SEARCH_LIMIT = 10

# Maximum number of results allowed (prevents expensive queries)
MAX_SEARCH_LIMIT = 50


# =============================================================================
# Hierarchy
# =============================================================================

# Maximum length of project and sprint names
MAX_NAME_LENGTH = 100

# Fallback placement used by `mch migrate --to-uncategorized`
UNCATEGORIZED_PROJECT = "Uncategorized"
GENERAL_SPRINT = "General"


# =============================================================================
# Store Location
# =============================================================================

CONFIG_FILENAME = "config.yaml"


def get_config_dir() -> Path:
    """Get the directory holding config.yaml.

    Discovery order:
    1. MCH_CONFIG_DIR environment variable (explicit override)
    2. ~/.mch/
    """
    root = os.environ.get("MCH_CONFIG_DIR")
    if root:
        return Path(root)
    return Path.home() / ".mch"


def get_store_root() -> Path:
    """Get the root directory of the markdown store.

    Discovery order:
    1. MCH_STORE_ROOT environment variable (explicit override)
    2. {config_dir}/store/
    """
    root = os.environ.get("MCH_STORE_ROOT")
    if root:
        return Path(root)
    return get_config_dir() / "store"


class CoreConfig(BaseModel):
    """Settings consumed by the linking and hierarchy services."""

    similarity_threshold: float = Field(default=SIMILARITY_THRESHOLD, ge=0.0, le=1.0)
    max_related_links: int = Field(default=MAX_RELATED_LINKS, ge=0)
    embedding_model: str = EMBEDDING_MODEL
    storage_backend: Literal["markdown", "memory"] = "markdown"
    store_root: Path | None = None

    def resolved_store_root(self) -> Path:
        return self.store_root or get_store_root()


# Environment variable -> CoreConfig field
_ENV_OVERRIDES = {
    "MCH_SIMILARITY_THRESHOLD": "similarity_threshold",
    "MCH_MAX_RELATED_LINKS": "max_related_links",
    "MCH_EMBEDDING_MODEL": "embedding_model",
    "MCH_STORAGE": "storage_backend",
    "MCH_STORE_ROOT": "store_root",
}


def _read_config_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError) as e:
        raise ConfigurationError(f"Failed to read {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a YAML mapping")
    return data


def load_config(path: Path | None = None) -> CoreConfig:
    """Build the process-wide configuration value.

    Values are layered: built-in defaults, then config.yaml, then
    MCH_* environment variables.

    Args:
        path: Explicit config file. Defaults to {config_dir}/config.yaml.

    Returns:
        Validated CoreConfig.

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid.
    """
    config_path = path or get_config_dir() / CONFIG_FILENAME
    values = _read_config_file(config_path)

    for env_var, field_name in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if raw:
            values[field_name] = raw

    try:
        return CoreConfig.model_validate(values)
    except PydanticValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"{loc}: {error['msg']}")
        raise ConfigurationError("Invalid configuration: " + "; ".join(errors)) from e
