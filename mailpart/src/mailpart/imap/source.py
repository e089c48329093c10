"""IMAP-backed :class:`~mailpart.core.source.PartSource`.

What:
  Fetch part bodies, part MIME headers, whole message bodies, and
  ``BODYSTRUCTURE`` responses over IMAP, converting the latter into
  :class:`~mailpart.core.structure.StructureDescriptor` trees.

Why:
  ``imapclient`` returns ``BODYSTRUCTURE`` as nested tuples of bytes whose
  layout depends on the media type (text parts carry a line count, embedded
  messages carry an envelope and a nested body). The decoding core should see
  one typed tree instead.

How:
  Every fetch uses ``BODY.PEEK[<section>]`` so reading never marks messages as
  seen; :meth:`ImapPartSource.iter_part_bytes` streams a part with partial
  ``BODY.PEEK[<section>]<offset.count>`` fetches so large attachments are
  never held whole. :func:`structure_from_bodystructure` walks the tuple recursively
  following the RFC 3501 ``body`` grammar.

Interfaces:
  :class:`ImapPartSource`, :func:`structure_from_bodystructure`.
"""
from __future__ import annotations

from typing import Any, Iterator, Optional, Sequence, Tuple

from ..config.loader import get_runtime_config
from ..core.structure import MimeType, ParameterList, StructureDescriptor
from .client import MailPartImapClient


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", "surrogateescape")
    return str(value)


def _pairs(value: Any) -> ParameterList:
    """Convert a flat ``(key, value, key, value)`` tuple into parameters."""

    if not value:
        return ParameterList()
    items = list(value)
    return ParameterList(
        tuple((_text(items[i]) or "", _text(items[i + 1]) or "") for i in range(0, len(items) - 1, 2))
    )


def _disposition(value: Any) -> Tuple[Optional[str], ParameterList]:
    if not value or not isinstance(value, (list, tuple)):
        return None, ParameterList()
    name = _text(value[0])
    parameters = _pairs(value[1]) if len(value) > 1 else ParameterList()
    return (name.lower() if name else None), parameters


def _is_multipart(body: Sequence[Any]) -> bool:
    return bool(body) and isinstance(body[0], (list, tuple))


def structure_from_bodystructure(body: Sequence[Any]) -> StructureDescriptor:
    """Convert an ``imapclient`` ``BODYSTRUCTURE`` value into a descriptor.

    Args:
      body: ``BodyData`` (or plain tuple) as returned by ``IMAPClient.fetch``.

    Returns:
      The equivalent :class:`StructureDescriptor` tree.
    """

    if _is_multipart(body):
        parts = tuple(structure_from_bodystructure(part) for part in body[0])
        subtype = _text(body[1]) if len(body) > 1 else "mixed"
        extension = list(body[2:])
        parameters = _pairs(extension[0]) if extension else ParameterList()
        disposition, disposition_parameters = _disposition(extension[1] if len(extension) > 1 else None)
        return StructureDescriptor(
            type=MimeType.MULTIPART,
            subtype=subtype or "mixed",
            parameters=parameters,
            disposition=disposition,
            disposition_parameters=disposition_parameters,
            parts=parts,
        )

    media_type = MimeType.from_name(body[0])
    subtype = _text(body[1]) or "octet-stream"
    rest = list(body[7:])
    parts: Tuple[StructureDescriptor, ...] = ()
    if media_type is MimeType.MESSAGE and subtype.upper() == "RFC822" and len(rest) >= 3:
        # envelope, body, line count
        parts = (structure_from_bodystructure(rest[1]),)
        rest = rest[3:]
    elif media_type is MimeType.TEXT and rest:
        rest = rest[1:]
    size = body[6] if len(body) > 6 else None
    disposition, disposition_parameters = _disposition(rest[1] if len(rest) > 1 else None)
    return StructureDescriptor(
        type=media_type,
        subtype=subtype,
        encoding=_text(body[5]) if len(body) > 5 else None,
        size=int(size) if size is not None else None,
        parameters=_pairs(body[2]) if len(body) > 2 else ParameterList(),
        disposition=disposition,
        disposition_parameters=disposition_parameters,
        parts=parts,
    )


class ImapPartSource:
    """Part source reading from the folder selected on a connected client.

    Args:
      client: Connected :class:`MailPartImapClient`.
      chunk_size: Octets requested per partial fetch in
        :meth:`iter_part_bytes`; defaults to ``save.chunk_size``.
    """

    def __init__(self, client: MailPartImapClient, chunk_size: Optional[int] = None):
        self._client = client
        self._chunk_size = chunk_size or get_runtime_config().save.chunk_size

    def _fetch_section(self, message_id: int, section: str) -> bytes:
        response = self._client.fetch([message_id], [f"BODY.PEEK[{section}]"])
        fields = response.get(message_id, {})
        value = fields.get(f"BODY[{section}]".encode("ascii"))
        if value is None:
            raise RuntimeError(f"Message {message_id} has no section {section}")
        return bytes(value)

    def fetch_part_bytes(self, message_id: int, part_id: str) -> bytes:
        return self._fetch_section(message_id, part_id)

    def fetch_part_header(self, message_id: int, part_id: str) -> bytes:
        return self._fetch_section(message_id, f"{part_id}.MIME")

    def fetch_message_header(self, message_id: int, part_id: str) -> bytes:
        return self._fetch_section(message_id, f"{part_id}.HEADER")

    def fetch_whole_message_body(self, message_id: int) -> bytes:
        return self._fetch_section(message_id, "TEXT")

    def iter_part_bytes(self, message_id: int, part_id: str) -> Iterator[bytes]:
        """Yield the body of ``part_id`` through successive partial fetches.

        Each request asks for ``BODY.PEEK[<part>]<offset.chunk_size>``; a reply
        shorter than ``chunk_size`` ends the transfer.

        Raises:
          RuntimeError: If the server returns nothing for the first chunk.
        """

        offset = 0
        while True:
            response = self._client.fetch(
                [message_id], [f"BODY.PEEK[{part_id}]<{offset}.{self._chunk_size}>"]
            )
            value = response.get(message_id, {}).get(f"BODY[{part_id}]<{offset}>".encode("ascii"))
            if value is None:
                if offset == 0:
                    raise RuntimeError(f"Message {message_id} has no section {part_id}")
                return
            chunk = bytes(value)
            if chunk:
                yield chunk
            if len(chunk) < self._chunk_size:
                return
            offset += len(chunk)

    def structure_of(self, message_id: int) -> StructureDescriptor:
        response = self._client.fetch([message_id], ["BODYSTRUCTURE"])
        fields = response.get(message_id, {})
        body = fields.get(b"BODYSTRUCTURE")
        if body is None:
            raise RuntimeError(f"Message {message_id} has no BODYSTRUCTURE")
        return structure_from_bodystructure(body)
