"""Content-Transfer-Encoding decoders for whole buffers and streams.

What:
  Undo base64 and quoted-printable transfer encodings, either on a complete
  buffer (:func:`decode_body`) or incrementally while bytes flow to a file
  (:class:`StreamDecoder` subclasses), plus the ``B``/``Q`` payload decoders
  used by RFC 2047 encoded words.

Why:
  Attachments must be materialised byte-exact, and large ones should reach
  disk without being held in memory. Incremental decoders need to cope with
  base64 quanta and ``=XX`` escapes that straddle chunk boundaries.

How:
  Base64 input is reduced to its alphabet and decoded in multiples of four
  characters, keeping the remainder for the next chunk; :meth:`flush` pads
  what is left. Quoted-printable input is decoded line by line with
  :func:`binascii.a2b_qp`, keeping the unterminated last line pending so soft
  line breaks and escapes are never cut in half.

Interfaces:
  :func:`decode_body`, :func:`decode_b`, :func:`decode_q`,
  :func:`stream_decoder_for`, :class:`StreamDecoder`,
  :class:`Base64StreamDecoder`, :class:`QuotedPrintableStreamDecoder`,
  :class:`IdentityStreamDecoder`.

Invariants & Safety:
  - :func:`decode_body` never raises; malformed base64 decodes as far as the
    data allows.
  - Feeding a payload in any chunking followed by :meth:`flush` yields the
    same bytes as :func:`decode_body` on the whole payload.
"""
from __future__ import annotations

import abc
import base64
import binascii
import re

from .structure import TransferEncoding

_NON_BASE64 = re.compile(rb"[^A-Za-z0-9+/=]")


def _pad_base64(data: bytes) -> bytes:
    data = data.rstrip(b"=")
    remainder = len(data) % 4
    if remainder == 1:
        # a lone sextet carries no full byte
        data = data[:-1]
    elif remainder:
        data += b"=" * (4 - remainder)
    return data


def _decode_base64(data: bytes) -> bytes:
    cleaned = _NON_BASE64.sub(b"", data)
    try:
        return binascii.a2b_base64(cleaned)
    except binascii.Error:
        return binascii.a2b_base64(_pad_base64(cleaned.replace(b"=", b"")))


def decode_b(payload: str) -> bytes:
    """Decode the payload of a ``B`` encoded word.

    Missing padding is tolerated; characters outside the base64 alphabet make
    the payload invalid.

    Raises:
      ValueError: If the payload is not base64.
    """

    compact = "".join(payload.split())
    if not re.fullmatch(r"[A-Za-z0-9+/]*={0,2}", compact):
        raise ValueError("invalid base64 payload")
    return base64.b64decode(_pad_base64(compact.encode("ascii")))


def decode_q(payload: str) -> bytes:
    """Decode the payload of a ``Q`` encoded word (``_`` is a space, ``=XX`` a byte)."""

    return binascii.a2b_qp(payload.encode("utf-8", "surrogateescape"), header=True)


def decode_body(data: bytes, encoding: TransferEncoding | str | None) -> bytes:
    """Undo the transfer encoding of a complete body.

    Args:
      data: Raw body bytes as fetched from the server.
      encoding: Declared Content-Transfer-Encoding.

    Returns:
      Decoded bytes; identity for 7bit, 8bit, binary and unknown encodings.
    """

    encoding = TransferEncoding.from_name(encoding)
    if encoding is TransferEncoding.BASE64:
        return _decode_base64(bytes(data))
    if encoding is TransferEncoding.QUOTED_PRINTABLE:
        return binascii.a2b_qp(bytes(data))
    return bytes(data)


class StreamDecoder(abc.ABC):
    """Incremental transfer decoder attached between a byte source and a sink."""

    @abc.abstractmethod
    def feed(self, chunk: bytes) -> bytes:
        """Return the decoded bytes that ``chunk`` completes."""

    def flush(self) -> bytes:
        return b""


class IdentityStreamDecoder(StreamDecoder):
    def feed(self, chunk: bytes) -> bytes:
        return bytes(chunk)


class Base64StreamDecoder(StreamDecoder):
    """Decode base64 in complete four-character quanta."""

    def __init__(self) -> None:
        self._pending = b""

    def feed(self, chunk: bytes) -> bytes:
        self._pending += _NON_BASE64.sub(b"", chunk)
        usable = len(self._pending) - len(self._pending) % 4
        if not usable:
            return b""
        ready, self._pending = self._pending[:usable], self._pending[usable:]
        return _decode_base64(ready)

    def flush(self) -> bytes:
        pending, self._pending = self._pending, b""
        if not pending:
            return b""
        return _decode_base64(pending)


class QuotedPrintableStreamDecoder(StreamDecoder):
    """Decode quoted-printable one complete line at a time."""

    def __init__(self) -> None:
        self._pending = b""

    def feed(self, chunk: bytes) -> bytes:
        self._pending += bytes(chunk)
        cut = self._pending.rfind(b"\n")
        if cut < 0:
            return b""
        ready, self._pending = self._pending[:cut + 1], self._pending[cut + 1:]
        return binascii.a2b_qp(ready)

    def flush(self) -> bytes:
        pending, self._pending = self._pending, b""
        return binascii.a2b_qp(pending) if pending else b""


def stream_decoder_for(encoding: TransferEncoding | str | None) -> StreamDecoder:
    """Select the incremental decoder matching ``encoding``."""

    encoding = TransferEncoding.from_name(encoding)
    if encoding is TransferEncoding.BASE64:
        return Base64StreamDecoder()
    if encoding is TransferEncoding.QUOTED_PRINTABLE:
        return QuotedPrintableStreamDecoder()
    return IdentityStreamDecoder()
