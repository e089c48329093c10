"""Immutable description of a MIME part as reported by the transport.

What:
  Model the structure descriptor supplied by the IMAP layer: media type,
  subtype, transfer encoding, byte size, Content-Type and Content-Disposition
  parameters, and the ordered sub-parts of multipart and embedded-message
  parts.

Why:
  Filename resolution and transfer decoding only need this metadata. Keeping
  it in a frozen tree means the decoders can be handed a descriptor without
  any risk of it being mutated behind the caller's back.

How:
  :class:`StructureDescriptor` is a frozen dataclass whose ``parts`` tuple
  forms a tagged tree (leaves have no parts; ``multipart/*`` and
  ``message/rfc822`` nodes carry children). Parameters live in
  :class:`ParameterList` which performs case-insensitive lookup and collapses
  RFC 2231 continuations (``name*0*``, ``name*1*`` ...) into a single value.

Interfaces:
  :class:`MimeType`, :class:`TransferEncoding`, :class:`ParameterList`,
  :class:`StructureDescriptor`, :class:`StructureError`.

Invariants & Safety:
  - Descriptors are never mutated after construction.
  - Disposition parameters take precedence over Content-Type parameters with
    the same key.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote


class StructureError(ValueError):
    """Raised when a descriptor lacks a field the decoders cannot do without."""


class MimeType(str, Enum):
    """Top-level media types in IMAP body type order."""

    TEXT = "text"
    MULTIPART = "multipart"
    MESSAGE = "message"
    APPLICATION = "application"
    AUDIO = "audio"
    IMAGE = "image"
    VIDEO = "video"
    MODEL = "model"
    OTHER = "other"

    @classmethod
    def from_name(cls, name: Union[str, bytes, "MimeType", None]) -> "MimeType":
        if isinstance(name, cls):
            return name
        if isinstance(name, bytes):
            name = name.decode("ascii", "replace")
        try:
            return cls((name or "").strip().lower())
        except ValueError:
            return cls.OTHER

    @classmethod
    def from_id(cls, type_id: int) -> "MimeType":
        members = list(cls)
        if 0 <= type_id < len(members):
            return members[type_id]
        return cls.OTHER


class TransferEncoding(str, Enum):
    """Content-Transfer-Encoding values in IMAP encoding id order."""

    SEVEN_BIT = "7bit"
    EIGHT_BIT = "8bit"
    BINARY = "binary"
    BASE64 = "base64"
    QUOTED_PRINTABLE = "quoted-printable"
    OTHER = "other"

    @classmethod
    def from_name(cls, name: Union[str, bytes, "TransferEncoding", None]) -> "TransferEncoding":
        if isinstance(name, cls):
            return name
        if isinstance(name, bytes):
            name = name.decode("ascii", "replace")
        if not name:
            return cls.SEVEN_BIT
        try:
            return cls(name.strip().lower())
        except ValueError:
            return cls.OTHER

    @classmethod
    def from_id(cls, encoding_id: int) -> "TransferEncoding":
        members = list(cls)
        if 0 <= encoding_id < len(members):
            return members[encoding_id]
        return cls.OTHER


_CONTINUATION = re.compile(r"^(?P<base>[^*]+)\*(?P<index>\d+)(?P<extended>\*)?$")


@dataclass(frozen=True)
class ParameterList:
    """Ordered, case-insensitive MIME parameters.

    What:
      Stores ``(key, value)`` pairs exactly as received and answers lookups
      by lower-cased key.

    Why:
      Servers report ``NAME``, ``Name`` and ``name`` interchangeably, and long
      filenames arrive split into RFC 2231 continuations that callers should
      not have to reassemble themselves.

    How:
      :meth:`as_dict` folds the pairs into a dictionary, collapsing numbered
      continuations. When any segment is extended (``*n*``), the collapsed
      value is exposed under ``base*`` in ``charset'language'percent-encoded``
      form with plain segments percent-quoted; otherwise the plain segments are
      joined under ``base``. Explicit keys win over collapsed ones.
    """

    items: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Union[Mapping[str, str], Iterable[Tuple[str, str]], None]) -> "ParameterList":
        if pairs is None:
            return cls()
        if isinstance(pairs, Mapping):
            pairs = pairs.items()
        return cls(tuple((str(key), str(value)) for key, value in pairs))

    def as_dict(self) -> Dict[str, str]:
        plain: Dict[str, str] = {}
        segments: Dict[str, List[Tuple[int, bool, str]]] = {}
        for key, value in self.items:
            lowered = key.strip().lower()
            match = _CONTINUATION.match(lowered)
            if match:
                segments.setdefault(match["base"], []).append(
                    (int(match["index"]), bool(match["extended"]), value)
                )
            else:
                plain[lowered] = value
        for base, parts in segments.items():
            parts.sort(key=lambda part: part[0])
            if any(extended for _, extended, _ in parts):
                head_index, head_extended, head_value = parts[0]
                if head_extended and head_value.count("'") >= 2:
                    charset, language, first = head_value.split("'", 2)
                    prefix = f"{charset}'{language}'"
                    pieces = [first]
                else:
                    prefix = "''"
                    pieces = [head_value if head_extended else quote(head_value, safe="")]
                for _, extended, value in parts[1:]:
                    pieces.append(value if extended else quote(value, safe=""))
                plain.setdefault(f"{base}*", prefix + "".join(pieces))
            else:
                plain.setdefault(base, "".join(value for _, _, value in parts))
        return plain

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.as_dict().get(key.lower(), default)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self.as_dict()

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class StructureDescriptor:
    """One node of a message's MIME tree.

    Attributes:
      type: Top-level media type.
      subtype: Media subtype as reported (case preserved).
      encoding: Content-Transfer-Encoding of the part body.
      size: Body size in bytes when the server reported it.
      parameters: Content-Type parameters.
      disposition: Content-Disposition value (``attachment``, ``inline``).
      disposition_parameters: Content-Disposition parameters.
      parts: Children of ``multipart/*`` parts; the body of an embedded
        ``message/rfc822`` part.
    """

    type: MimeType
    subtype: str
    encoding: TransferEncoding = TransferEncoding.SEVEN_BIT
    size: Optional[int] = None
    parameters: ParameterList = field(default_factory=ParameterList)
    disposition: Optional[str] = None
    disposition_parameters: ParameterList = field(default_factory=ParameterList)
    parts: Tuple["StructureDescriptor", ...] = ()

    def __post_init__(self) -> None:
        if self.type is None:
            raise StructureError("structure descriptor requires a media type")
        if not self.subtype:
            raise StructureError("structure descriptor requires a subtype")
        object.__setattr__(self, "type", MimeType.from_name(self.type))
        object.__setattr__(self, "encoding", TransferEncoding.from_name(self.encoding))
        if not isinstance(self.parameters, ParameterList):
            object.__setattr__(self, "parameters", ParameterList.from_pairs(self.parameters))
        if not isinstance(self.disposition_parameters, ParameterList):
            object.__setattr__(
                self, "disposition_parameters", ParameterList.from_pairs(self.disposition_parameters)
            )
        object.__setattr__(self, "parts", tuple(self.parts))

    @property
    def mime_type(self) -> str:
        return f"{self.type.value}/{self.subtype.lower()}"

    @property
    def is_multipart(self) -> bool:
        return self.type is MimeType.MULTIPART

    @property
    def is_embedded_message(self) -> bool:
        return self.type is MimeType.MESSAGE and self.subtype.upper() == "RFC822"

    @property
    def is_attachment_disposition(self) -> bool:
        return (self.disposition or "").strip().lower() == "attachment"

    def all_parameters(self) -> Dict[str, str]:
        """Merge Content-Type and Content-Disposition parameters."""

        merged = self.parameters.as_dict()
        merged.update(self.disposition_parameters.as_dict())
        return merged

    def parameter(self, key: str) -> Optional[str]:
        return self.all_parameters().get(key.lower())

    def walk(self, section: str = "") -> Iterator[Tuple[str, "StructureDescriptor"]]:
        """Yield ``(section, descriptor)`` pairs depth-first in IMAP numbering.

        The root of a multipart message has no section of its own; a
        single-part message body is section ``1``. The multipart body of an
        embedded message is numbered through directly (``2.1``, ``2.2``).
        """

        if not self.parts:
            yield section or "1", self
            return
        if section:
            yield section, self
        children = self.parts
        if self.is_embedded_message and len(children) == 1 and children[0].is_multipart:
            children = children[0].parts
        for index, child in enumerate(children, 1):
            yield from child.walk(f"{section}.{index}" if section else str(index))
