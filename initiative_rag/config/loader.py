"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- pipeline tuning defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

:func:`load_config` reads the YAML file first, deep-merges the
Settings-derived values on top, then validates the pipeline section so a
bad chunk size or unknown backend fails at startup rather than mid-request.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from initiative_rag.config.settings import Settings
from initiative_rag.utils.errors import ConfigurationError

_CHUNK_STORE_BACKENDS = frozenset({"sqlite", "chromadb"})

# Used when config.yaml is absent or omits a key.
DEFAULT_CONFIG: dict[str, Any] = {
    "chunking": {"size": 1000, "overlap": 150},
    "embedding": {"batch_size": 64},
    "retrieval": {
        "match_count": 10,
        "search_match_count": 20,
        "min_similarity": 0.78,
    },
    "answer": {
        "max_candidates": 50,
        "max_contexts": 6,
        "loose_max_contexts": 10,
        "max_context_chars": 1200,
        "temperature": 0.2,
        "max_tokens": 800,
    },
    "attachments": {
        "signed_url_ttl": 3600,
        "max_files_per_upload": 5,
    },
}


def load_config(
    path: str = "config/config.yaml",
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is built when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML is malformed or a pipeline value is
            out of range.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                message=f"Could not parse {config_path}: {exc}",
            ) from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(message=f"{config_path} must contain a mapping")
        _deep_merge(config, yaml_config)

    s = settings or Settings()
    env_overrides = {
        "app": {
            "host": s.app_host,
            "port": s.app_port,
            "env": s.app_env,
        },
        "storage": {
            "database_path": s.database_path,
            "chunk_store_backend": s.chunk_store_backend,
            "chromadb_persist_dir": s.chromadb_persist_dir,
            "chromadb_collection": s.chromadb_collection,
            "attachments_dir": s.attachments_dir,
        },
        "providers": {
            "openai_configured": bool(s.openai_api_key),
            "embedding_model": s.openai_embedding_model,
            "chat_model": s.openai_chat_model,
            "timeout_seconds": s.request_timeout_seconds,
        },
        "logging": {
            "level": s.log_level,
        },
    }
    _deep_merge(config, env_overrides)

    validate_config(config)
    return config


def validate_config(config: dict[str, Any]) -> None:
    """Reject pipeline settings that would break the chunking or retrieval invariants."""
    chunking = config.get("chunking", {})
    size, overlap = chunking.get("size"), chunking.get("overlap")
    if not isinstance(size, int) or not isinstance(overlap, int):
        raise ConfigurationError(message="chunking.size and chunking.overlap must be integers")
    if overlap < 0 or size <= overlap:
        raise ConfigurationError(
            message=f"chunking.size ({size}) must be greater than chunking.overlap ({overlap}) >= 0",
        )

    batch_size = config.get("embedding", {}).get("batch_size")
    if not isinstance(batch_size, int) or batch_size < 1:
        raise ConfigurationError(message="embedding.batch_size must be a positive integer")

    min_similarity = config.get("retrieval", {}).get("min_similarity")
    if not isinstance(min_similarity, (int, float)) or not 0.0 <= min_similarity <= 1.0:
        raise ConfigurationError(message="retrieval.min_similarity must be within [0, 1]")

    backend = config.get("storage", {}).get("chunk_store_backend", "sqlite")
    if backend not in _CHUNK_STORE_BACKENDS:
        raise ConfigurationError(
            message=f"Unknown chunk store backend '{backend}'; "
            f"expected one of {sorted(_CHUNK_STORE_BACKENDS)}",
        )


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
