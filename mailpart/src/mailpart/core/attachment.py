"""Attachment view over one part of a fetched message.

What:
  Assemble the user-facing view of an attachment from its structure
  descriptor: decoded filename, mime type, size, transfer-decoded body bytes,
  and streaming save operations.

Why:
  Filenames hide behind four parameter spellings, RFC 2231 continuations, and
  RFC 2047 encoded words; embedded messages have no filename at all. Callers
  want one object answering "what is it called" and "write it to disk" without
  knowing any of that, and without fetching the same body twice.

How:
  :class:`Attachment` resolves filename, mime type, and size once in the
  constructor. :meth:`Attachment.get_data` memoises the fetched body in a
  single-assignment cell guarded by a lock. :meth:`Attachment.save_as`
  checks the destination before opening it, then streams raw part bytes
  through the incremental decoder matching the transfer encoding.

Interfaces:
  :class:`Attachment`, :func:`attachments_of`.

Invariants & Safety:
  - The structure descriptor is borrowed and never modified.
  - The body is fetched at most once per instance.
  - Save operations report failure as ``False`` and never leave a partial
    file behind; an existing destination is only replaced by a complete one.
"""
from __future__ import annotations

import os
import tempfile
import threading
from email import policy
from email.parser import BytesHeaderParser
from email.utils import decode_rfc2231
from pathlib import Path
from typing import Any, Iterator, List, Optional, Union
from urllib.parse import unquote_to_bytes

from ..config.loader import get_runtime_config
from ..config.schema import RuntimeConfig
from ..utils.logging import get_logger
from .encoded_words import EncodedWordDecoder
from .source import PartSource
from .structure import StructureDescriptor, StructureError
from .transfer import decode_body, stream_decoder_for

LOGGER = get_logger("mailpart.attachment")

FILENAME_KEYS = ("filename*", "name*", "filename", "name")
"""Parameter keys consulted for the filename, highest precedence first."""


def _safe_name(filename: str) -> Optional[str]:
    name = filename.replace("/", "_").replace("\\", "_").replace("\x00", "")
    if name.strip() in {"", ".", ".."}:
        return None
    return name


class Attachment:
    """One attachment of a message.

    Args:
      source: Byte supplier for the message.
      message_id: Identifier understood by ``source`` (an IMAP UID).
      structure: Descriptor of the attachment part.
      part_id: IMAP section of the part; ``None`` when the attachment is the
        whole single-part message body.
      settings: Runtime configuration; defaults to the cached one.

    Raises:
      StructureError: If ``structure`` is not a :class:`StructureDescriptor`.
    """

    def __init__(
        self,
        source: PartSource,
        message_id: Any,
        structure: StructureDescriptor,
        part_id: Optional[str] = None,
        *,
        settings: Optional[RuntimeConfig] = None,
    ) -> None:
        if not isinstance(structure, StructureDescriptor):
            raise StructureError("attachment requires a StructureDescriptor")
        self._source = source
        self._message_id = message_id
        self._structure = structure
        self._part_id = part_id
        self._settings = settings or get_runtime_config()
        self._decoder = EncodedWordDecoder(self._settings.decoding)
        self._lock = threading.Lock()
        self._data: Optional[bytes] = None

        self.filename: Optional[str] = self.resolve_filename(structure)
        self.mime_type: str = structure.mime_type
        self.size: Optional[int] = structure.size
        self.encoding = structure.encoding

    @property
    def structure(self) -> StructureDescriptor:
        return self._structure

    @property
    def part_id(self) -> Optional[str]:
        return self._part_id

    def resolve_filename(self, descriptor: StructureDescriptor) -> Optional[str]:
        """Determine the filename advertised by ``descriptor``.

        What:
          Walks ``filename*``, ``name*``, ``filename``, ``name`` in that order
          and returns the first value that decodes to a non-empty string. For
          embedded messages without any of them, names the file after the
          embedded Subject with an ``.eml`` suffix.

        How:
          Extended values carrying a ``charset'language'`` prefix are
          percent-decoded and converted from that charset; all other values go
          through the encoded-word decoder.

        Returns:
          Decoded filename, or ``None`` when the part advertises none.
        """

        parameters = descriptor.all_parameters()
        for key in FILENAME_KEYS:
            value = parameters.get(key)
            if not value:
                continue
            name = self._decode_parameter(key, value)
            if name:
                return name
        if self._part_id is not None and descriptor.is_embedded_message:
            return self._message_filename()
        return None

    def _decode_parameter(self, key: str, value: str) -> Optional[str]:
        target = self._settings.decoding.target_charset
        if key.endswith("*"):
            charset, _language, text = decode_rfc2231(value)
            if charset is not None:
                raw = unquote_to_bytes(text)
                return self._decoder.converter.convert(raw, charset or None, target)
            value = text
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            # raw 8-bit octets smuggled through as surrogates
            return self._decoder.decode(value.encode("utf-8", "surrogateescape"), target)
        return self._decoder.decode(value, target)

    @staticmethod
    def _raw_subject(header: bytes) -> Optional[bytes]:
        parsed = BytesHeaderParser(policy=policy.compat32).parsebytes(bytes(header))
        for name, value in parsed.raw_items():
            if name.lower() == "subject":
                return value.encode("ascii", "surrogateescape")
        return None

    def _message_filename(self) -> str:
        decoding = self._settings.decoding
        stem = decoding.fallback_message_name
        raw = self._raw_subject(self._source.fetch_part_header(self._message_id, self._part_id))
        if raw is None:
            # the Subject of an embedded message lives in its own header block
            raw = self._raw_subject(self._source.fetch_message_header(self._message_id, self._part_id))
        if raw is not None:
            subject = self._decoder.decode_subject(raw, decoding.target_charset, decoding.subject_max_length)
            if subject:
                stem = subject
        return f"{stem}.eml"

    def get_data(self) -> bytes:
        """Return the transfer-decoded body, fetching it on first use only.

        Embedded messages are returned as their header block followed by
        their body, untouched, since they are stored as literal RFC 822 text.
        """

        with self._lock:
            if self._data is None:
                self._data = self._fetch_data()
            return self._data

    def _fetch_data(self) -> bytes:
        if self._part_id is not None:
            body = self._source.fetch_part_bytes(self._message_id, self._part_id)
            if self._structure.is_embedded_message:
                header = self._source.fetch_part_header(self._message_id, self._part_id)
                return bytes(header) + bytes(body)
        else:
            body = self._source.fetch_whole_message_body(self._message_id)
        return decode_body(body, self.encoding)

    def _iter_raw(self) -> Iterator[bytes]:
        part_id = self._part_id or "1"
        if self._structure.is_embedded_message and self._part_id is not None:
            yield bytes(self._source.fetch_part_header(self._message_id, part_id))
        iter_part_bytes = getattr(self._source, "iter_part_bytes", None)
        if iter_part_bytes is not None:
            yield from iter_part_bytes(self._message_id, part_id)
            return
        body = self._source.fetch_part_bytes(self._message_id, part_id)
        chunk_size = self._settings.save.chunk_size
        for start in range(0, len(body), chunk_size):
            yield body[start:start + chunk_size]

    def save_as(self, path: Union[str, os.PathLike]) -> bool:
        """Write the decoded attachment to exactly ``path``.

        What:
          Streams the raw part through the decoder selected by the transfer
          encoding into ``path``.

        Why:
          Large attachments should reach disk without being buffered whole,
          and a failed save must not look like a successful one.

        How:
          Refuses non-writable destinations and missing or non-writable parent
          directories before opening anything. Bytes go to a temporary file in
          the destination directory which replaces ``path`` only once the
          decoder is drained; on any failure the temporary file is removed and
          an existing ``path`` keeps its previous content.

        Args:
          path: Destination file path.

        Returns:
          ``True`` on success, ``False`` otherwise.
        """

        destination = Path(path)
        if destination.exists():
            if destination.is_dir() or not os.access(destination, os.W_OK):
                LOGGER.error("save_refused", reason="destination_not_writable", path=str(destination))
                return False
        if not destination.parent.is_dir() or not os.access(destination.parent, os.W_OK):
            LOGGER.error("save_refused", reason="parent_not_writable", path=str(destination))
            return False

        embedded = self._structure.is_embedded_message and self._part_id is not None
        decoder = stream_decoder_for(None if embedded else self.encoding)
        written = 0
        temp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile("wb", dir=str(destination.parent), delete=False) as handle:
                temp_path = Path(handle.name)
                for chunk in self._iter_raw():
                    written += handle.write(decoder.feed(chunk))
                written += handle.write(decoder.flush())
            temp_path.replace(destination)
        except Exception as exc:  # transport and filesystem errors both fail the save
            LOGGER.error("save_failed", path=str(destination), error=str(exc))
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            return False
        LOGGER.info("save_completed", path=str(destination), bytes=written, mime_type=self.mime_type)
        return True

    def save_to_directory(self, path: Union[str, os.PathLike]) -> bool:
        """Write the attachment into directory ``path`` under its own filename."""

        directory = Path(path)
        if self.filename is None or not directory.is_dir():
            return False
        name = _safe_name(self.filename)
        if name is None:
            return False
        return self.save_as(directory / name)


def attachments_of(
    source: PartSource,
    message_id: Any,
    *,
    structure: Optional[StructureDescriptor] = None,
    settings: Optional[RuntimeConfig] = None,
) -> List[Attachment]:
    """Build an :class:`Attachment` for every attachment-like part of a message.

    A part qualifies when it carries a filename or name parameter, has an
    ``attachment`` disposition, or is an embedded message. Parts nested inside
    an embedded message belong to it and are not listed separately.
    """

    structure = structure or source.structure_of(message_id)
    found: List[Attachment] = []
    embedded: List[str] = []
    for section, descriptor in structure.walk():
        if any(section.startswith(prefix + ".") for prefix in embedded):
            continue
        if descriptor.is_multipart:
            continue
        if descriptor.is_embedded_message:
            embedded.append(section)
        elif not (
            descriptor.is_attachment_disposition
            or any(key in descriptor.all_parameters() for key in FILENAME_KEYS)
        ):
            continue
        part_id = None if descriptor is structure else section
        found.append(Attachment(source, message_id, descriptor, part_id, settings=settings))
    return found
