"""Pydantic models describing the mailpart runtime configuration."""
from __future__ import annotations

import codecs
from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValidationError(ValueError):
    """Raised when configuration data does not satisfy the schema."""


DEFAULT_CHARSET_ALIASES: Dict[str, str] = {
    "gb2312": "gb18030",
    "gb_2312_80": "gb18030",
    "gbk": "gb18030",
    "x-gbk": "gb18030",
    "euc-kr": "cp949",
    "ks_c_5601-1987": "cp949",
    "ks_c_5601": "cp949",
    "big5": "big5hkscs",
    "shift_jis": "cp932",
    "x-sjis": "cp932",
    "windows-31j": "cp932",
    "tis-620": "cp874",
    "windows-874": "cp874",
    "iso-8859-11": "cp874",
    "macintosh": "mac_roman",
    "x-mac-cyrillic": "mac_cyrillic",
    "koi8-ru": "koi8_u",
    "unknown-8bit": "latin-1",
    "x-unknown": "latin-1",
    "unknown": "latin-1",
    "8bit": "latin-1",
}
"""Legacy charset labels seen in the wild mapped to the codec that decodes them."""


class DecodingSettings(BaseModel):
    """Charset handling for header and filename decoding."""

    model_config = ConfigDict(extra="forbid")

    target_charset: str = "UTF-8"
    subject_max_length: int = Field(default=50, gt=0)
    fallback_message_name: str = "message"
    mislabel_policy: Literal["declared", "sniff"] = "declared"
    charset_aliases: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CHARSET_ALIASES)
    )

    @field_validator("target_charset")
    @classmethod
    def _known_target(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError as exc:
            raise ValidationError(f"unknown target charset {value!r}") from exc
        return value

    @field_validator("fallback_message_name")
    @classmethod
    def _non_empty_name(cls, value: str) -> str:
        if not value.strip():
            raise ValidationError("fallback_message_name must not be blank")
        return value

    @field_validator("charset_aliases")
    @classmethod
    def _lowercase_aliases(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {label.strip().lower(): codec for label, codec in value.items()}


class SaveSettings(BaseModel):
    """Streaming parameters used when writing attachments to disk."""

    model_config = ConfigDict(extra="forbid")

    chunk_size: int = Field(default=65536, gt=0)


class ImapSettings(BaseModel):
    """Server level IMAP defaults used by the transport adapter."""

    model_config = ConfigDict(extra="forbid")

    default_mailbox: str = "INBOX"
    readonly: bool = True


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    decoding: DecodingSettings = Field(default_factory=DecodingSettings)
    save: SaveSettings = Field(default_factory=SaveSettings)
    imap: ImapSettings = Field(default_factory=ImapSettings)

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value != 1:
            raise ValidationError("config.yaml version must be 1")
        return value
