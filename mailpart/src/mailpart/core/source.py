"""Collaborator contract for fetching raw message bytes.

The decoding core never talks to a server itself. Anything that can hand out
part bodies, part headers, whole message bodies, and structure descriptors by
message identifier satisfies :class:`PartSource`; the IMAP implementation lives
in :mod:`mailpart.imap.source`, tests use an in-memory fake.
"""
from __future__ import annotations

from typing import Any, Iterator, Protocol, runtime_checkable

from .structure import StructureDescriptor


@runtime_checkable
class PartSource(Protocol):
    """Supplier of raw, untransformed message bytes."""

    def fetch_part_bytes(self, message_id: Any, part_id: str) -> bytes:
        """Return the transfer-encoded body of ``part_id``."""

    def fetch_part_header(self, message_id: Any, part_id: str) -> bytes:
        """Return the MIME header block of ``part_id``."""

    def fetch_message_header(self, message_id: Any, part_id: str) -> bytes:
        """Return the header block of the message embedded at ``part_id``."""

    def fetch_whole_message_body(self, message_id: Any) -> bytes:
        """Return the body of the message without its top-level header."""

    def structure_of(self, message_id: Any) -> StructureDescriptor:
        """Return the structure descriptor of the whole message."""


@runtime_checkable
class StreamingPartSource(PartSource, Protocol):
    """A :class:`PartSource` that can also yield a part body in chunks."""

    def iter_part_bytes(self, message_id: Any, part_id: str) -> Iterator[bytes]:
        """Yield the transfer-encoded body of ``part_id`` chunk by chunk."""
