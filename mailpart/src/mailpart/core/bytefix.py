"""Byte-level repair of malformed UTF-8.

What:
  Replace every byte that cannot start or continue a well-formed multi-byte
  UTF-8 sequence with ``?`` while copying valid sequences and ASCII verbatim.

Why:
  Headers routinely arrive labelled ``UTF-8`` while carrying Windows-1251 or
  Latin-1 bytes, and truncated sequences appear where clients cut filenames at
  a byte limit. Repairing at the byte level keeps every valid character intact
  instead of discarding the whole value.

How:
  Walk the buffer one logical sequence at a time. A lead byte announces the
  sequence width (2, 3 or 4 bytes); when all announced continuation bytes are
  present the sequence is copied, otherwise a single ``?`` is emitted and the
  scan resumes at the next byte.

Interfaces:
  :func:`fix`, :data:`QUESTION_MARK`.

Invariants & Safety:
  - Total over all inputs, never raises, and idempotent.
  - Each malformed byte maps to exactly one ``?``; well-formed input is
    returned unchanged.
  - Byte output is structurally well-formed (every lead byte is followed by
    its continuation bytes) but not strictly valid UTF-8: overlong forms such
    as ``C0 AC`` and encoded surrogates such as ``ED A0 80`` are copied.
"""
from __future__ import annotations

import codecs
from typing import Any, Tuple, Union

QUESTION_MARK = "mailpart-question-mark"
"""Codec error handler name replacing each undecodable byte with ``?``."""

_CONTINUATION = range(0x80, 0xC0)


def _question_mark(exc: UnicodeError) -> Tuple[str, int]:
    if isinstance(exc, UnicodeDecodeError):
        return "?", exc.start + 1
    if isinstance(exc, (UnicodeEncodeError, UnicodeTranslateError)):
        return "?" * (exc.end - exc.start), exc.end
    raise exc


codecs.register_error(QUESTION_MARK, _question_mark)


def _sequence_width(lead: int) -> int:
    if 0xC0 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF7:
        return 4
    return 0


def _repair(raw: bytes) -> bytes:
    out = bytearray()
    index, size = 0, len(raw)
    while index < size:
        lead = raw[index]
        if lead < 0x80:
            out.append(lead)
            index += 1
            continue
        width = _sequence_width(lead)
        tail = raw[index + 1:index + width]
        if width and len(tail) == width - 1 and all(byte in _CONTINUATION for byte in tail):
            out += raw[index:index + width]
            index += width
        else:
            # stray continuation, unknown lead, or truncated sequence
            out.append(0x3F)
            index += 1
    return bytes(out)


def fix(data: Union[bytes, bytearray, str, Any]) -> Any:
    """Repair malformed UTF-8 in ``data``.

    What:
      Returns ``data`` with every malformed UTF-8 unit replaced by ``?``.

    Why:
      Decoding must degrade gracefully; a garbled byte should cost one
      character, not the whole header.

    How:
      Byte buffers are scanned directly. Strings are first re-encoded with
      ``surrogateescape`` so bytes smuggled in by a lenient decode are
      recovered, then repaired and decoded back. Anything else is returned
      untouched.

    Args:
      data: Bytes-like object or string to repair.

    Returns:
      ``bytes`` for bytes-like input, ``str`` for string input, otherwise
      ``data`` itself.
    """

    if isinstance(data, (bytes, bytearray, memoryview)):
        return _repair(bytes(data))
    if isinstance(data, str):
        try:
            raw = data.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError:
            raw = data.encode("utf-8", QUESTION_MARK)
        return _repair(raw).decode("utf-8", QUESTION_MARK)
    return data
