"""Strict loader for the mailpart runtime configuration.

What:
  Locate, parse, validate, and cache ``config.yaml`` which tunes charset
  handling, streaming saves, and the IMAP adapter.

Why:
  Decoding policy (target charset, legacy charset aliases, the mislabelled
  UTF-8 heuristic) differs between deployments. Centralising the parsing keeps
  those knobs validated in one place so the decoding core can trust them.

How:
  Resolve candidate file locations based on an explicit parameter, the
  ``MAILPART_CONFIG_PATH`` environment variable, and well-known defaults. Parse
  YAML with :func:`yaml.safe_load`, validate through :class:`RuntimeConfig`, and
  memoise the result until :func:`reset_runtime_config` is called.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :class:`ConfigLoadError`,
  :class:`RuntimeConfigError`.

Invariants:
  - Payloads pass strict Pydantic validation before being returned.
  - An explicitly requested path must exist; implicit candidates that are all
    missing yield the built-in defaults so the library works unconfigured.

Safety/Performance:
  - File operations convert OS errors into typed exceptions that include the
    offending path.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import RuntimeConfig


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be loaded or validated."""


_CONFIG_ENV = "MAILPART_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("/etc/mailpart/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Optional[Path], RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Tuple[Path, bool]]:
    """Yield ``(path, required)`` pairs in priority order.

    What:
      Produce the ordered list of locations that should be inspected for
      ``config.yaml``.

    Why:
      Operators override the configuration through a function argument or the
      environment; both are treated as mandatory because a typo there should
      fail loudly rather than silently fall back to defaults.

    How:
      Accumulate deduplicated :class:`~pathlib.Path` objects from the explicit
      argument, ``MAILPART_CONFIG_PATH``, and the default locations.

    Args:
      path: Explicit path requested by the caller, or ``None``.

    Yields:
      Tuples of candidate path and whether its absence is an error.
    """

    seen: set[Path] = set()
    if path is not None:
        candidate = path.expanduser()
        seen.add(candidate)
        yield candidate, True
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate, True
    for default in _DEFAULT_LOCATIONS:
        candidate = default.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate, False


def _parse_config_payload(text: str, source: Path) -> dict[str, Any]:
    """Parse ``config.yaml`` text into a mapping ready for validation.

    Raises:
      RuntimeConfigError: If the YAML is invalid or not a mapping.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError("config.yaml must contain a mapping at the top-level")
    return payload


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    """Load and validate ``config.yaml`` from a specific path.

    Args:
      path: Filesystem location of the runtime configuration.

    Returns:
      The validated :class:`RuntimeConfig` model.

    Raises:
      RuntimeConfigError: If the file cannot be read or fails validation.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    payload = _parse_config_payload(text, path)
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid config.yaml: {exc}") from exc


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Locate ``config.yaml`` using the precedence chain, parse it, and return a
      validated :class:`RuntimeConfig`.

    Why:
      Every decode call consults the settings; caching avoids repeated disk IO
      while ``reload`` enables deterministic refreshes in tests.

    How:
      Consult the module cache unless ``reload`` is requested, then walk the
      candidates. Required candidates that are missing raise; when only
      optional defaults were inspected and none exist, cache a default
      :class:`RuntimeConfig`.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: When ``True`` forces a fresh load bypassing the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If a required file is missing or invalid.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    for candidate, required in _candidate_paths(requested_path):
        if not candidate.exists():
            if required:
                raise RuntimeConfigError(f"Configuration file missing: {candidate}")
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    config = RuntimeConfig()
    _RUNTIME_CACHE = (None, config)
    return config


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
