"""mailpart configuration package.

What:
  Provide the import surface for configuration loading and the pydantic schema
  classes consumed by the decoding core and the IMAP adapter.

Why:
  Centralising the exports shields callers from the internal layout and
  guarantees every setting passes validation before it is used.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config
  - RuntimeConfig / DecodingSettings / SaveSettings / ImapSettings
  - ConfigLoadError / RuntimeConfigError / ValidationError
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import (
    DecodingSettings,
    ImapSettings,
    RuntimeConfig,
    SaveSettings,
    ValidationError,
)

__all__ = [
    "get_runtime_config",
    "load_runtime_config",
    "reset_runtime_config",
    "ConfigLoadError",
    "RuntimeConfigError",
    "RuntimeConfig",
    "DecodingSettings",
    "SaveSettings",
    "ImapSettings",
    "ValidationError",
]
