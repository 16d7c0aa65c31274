"""libcontext configuration loader.

Priority (high → low):
  1. CLI flags                 (applied by the caller via apply_overrides())
  2. Per-project libcontext.yaml
  3. Global ~/.libcontext/config.yaml  (no API keys)
  4. Environment variables     (EMBEDDING_*, RERANKING_*, LIBCONTEXT_DB)
  5. Hardcoded defaults

Global config must never contain API keys; put them in the project file or
in environment variables. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from libcontext.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".libcontext"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "libcontext.yaml"
DEFAULT_DB_PATH: Path = _GLOBAL_CONFIG_DIR / "docs.db"

EMBEDDING_PROVIDERS: frozenset[str] = frozenset(["local", "openai"])
RERANKING_PROVIDERS: frozenset[str] = frozenset(["none", "local", "cohere", "jina"])

# Key names that look like credentials; forbidden in the global config.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["embedding", "reranking", "chunking", "database"])

# section → {field: env var}
_ENV_VARS: dict[str, dict[str, str]] = {
    "embedding": {
        "provider": "EMBEDDING_PROVIDER",
        "api_key": "EMBEDDING_API_KEY",
        "model": "EMBEDDING_MODEL",
        "api_url": "EMBEDDING_API_URL",
    },
    "reranking": {
        "provider": "RERANKING_PROVIDER",
        "api_key": "RERANKING_API_KEY",
        "model": "RERANKING_MODEL",
        "api_url": "RERANKING_API_URL",
    },
    "database": {"path": "LIBCONTEXT_DB"},
}


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingSettings:
    """Embedding provider configuration (libcontext.yaml: embedding:)."""

    provider: str = "local"
    api_key: str | None = None
    model: str | None = None  # None → the provider's default model
    api_url: str | None = None
    batch_size: int = 10


@dataclass
class RerankingSettings:
    """Reranking provider configuration (libcontext.yaml: reranking:)."""

    provider: str = "none"
    api_key: str | None = None
    model: str | None = None
    api_url: str | None = None


@dataclass
class ChunkingSettings:
    max_chunk_size: int = 1500


@dataclass
class DatabaseSettings:
    path: Path = DEFAULT_DB_PATH


@dataclass
class LibContextConfig:
    """Root configuration object, built by load_config()."""

    embedding: EmbeddingSettings = field(default_factory=EmbeddingSettings)
    reranking: RerankingSettings = field(default_factory=RerankingSettings)
    chunking: ChunkingSettings = field(default_factory=ChunkingSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else str(k)
                if _API_KEY_RE.search(str(k)):
                    env = _ENV_VARS.get(path, {}).get(str(k), str(k).upper().replace("-", "_"))
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must not be stored in the global config.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {env}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path | str) -> None:
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate_provider(value: str, valid: frozenset[str], section: str) -> str:
    value = value.strip().lower()
    if value not in valid:
        raise ConfigError(
            f"Invalid {section} provider '{value}'. "
            f"Valid providers: {', '.join(sorted(valid))}."
        )
    return value


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect the environment-variable layer as a raw config dict."""
    layer: dict[str, Any] = {}
    for section, mapping in _ENV_VARS.items():
        values = {key: environ[var] for key, var in mapping.items() if environ.get(var)}
        if values:
            layer[section] = values
    return layer


def _optional_str(value: Any) -> str | None:
    return None if value is None or value == "" else str(value)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data[name] or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping, got {type(value).__name__}.")
    return value


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if number < 1:
        raise ConfigError(f"{name} must be >= 1, got {number}")
    return number


def _cfg_from_dict(data: dict[str, Any]) -> LibContextConfig:
    """Build a LibContextConfig from a merged raw dict."""
    cfg = LibContextConfig()

    if "embedding" in data:
        e = _section(data, "embedding")
        cfg.embedding = EmbeddingSettings(
            provider=_validate_provider(
                str(e.get("provider", cfg.embedding.provider)), EMBEDDING_PROVIDERS, "embedding"
            ),
            api_key=_optional_str(e.get("api_key")),
            model=_optional_str(e.get("model")),
            api_url=_optional_str(e.get("api_url")),
            batch_size=_positive_int(
                e.get("batch_size", cfg.embedding.batch_size), "embedding.batch_size"
            ),
        )

    if "reranking" in data:
        r = _section(data, "reranking")
        cfg.reranking = RerankingSettings(
            provider=_validate_provider(
                str(r.get("provider", cfg.reranking.provider)), RERANKING_PROVIDERS, "reranking"
            ),
            api_key=_optional_str(r.get("api_key")),
            model=_optional_str(r.get("model")),
            api_url=_optional_str(r.get("api_url")),
        )

    if "chunking" in data:
        c = _section(data, "chunking")
        cfg.chunking = ChunkingSettings(
            max_chunk_size=_positive_int(
                c.get("max_chunk_size", cfg.chunking.max_chunk_size), "chunking.max_chunk_size"
            )
        )

    if "database" in data:
        d = _section(data, "database")
        if d.get("path"):
            cfg.database = DatabaseSettings(path=Path(str(d["path"])).expanduser())

    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LibContextConfig:
    """Load and return a merged LibContextConfig.

    Applies layers in order: env vars → global file → project file, each
    overriding the previous one. CLI flag overrides must be applied by the
    caller afterwards with apply_overrides().

    Args:
        project_dir: Directory to search for *libcontext.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        ConfigError: If the global config contains API-key-like fields, or a
            provider name or value is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()
    env = os.environ if environ is None else environ

    merged = _env_layer(env)

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    return _cfg_from_dict(merged)


def apply_overrides(settings: Any, **overrides: Any) -> Any:
    """Return a copy of a settings dataclass with non-None *overrides* applied.

    Used by the CLI so that only flags the user actually passed win over the
    loaded config. Provider names are validated like config values.

    Raises:
        ConfigError: On an unknown field or provider name.
    """
    names = {f.name for f in fields(settings)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in names:
            raise ConfigError(f"Unknown setting '{key}' for {type(settings).__name__}")
        if value is None:
            continue
        if key == "provider":
            valid = EMBEDDING_PROVIDERS if isinstance(settings, EmbeddingSettings) else RERANKING_PROVIDERS
            section = "embedding" if isinstance(settings, EmbeddingSettings) else "reranking"
            value = _validate_provider(str(value), valid, section)
        changes[key] = value
    return replace(settings, **changes)
