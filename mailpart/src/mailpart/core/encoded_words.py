"""RFC 2047 encoded-word decoding for header values.

What:
  Turn header values such as ``=?ISO-8859-1?Q?Andr=E9?= Pirard`` into plain
  text in a target charset, preserving literal text around the encoded words.

Why:
  Subjects and attachment names are the user-visible part of a message and
  arrive in every charset imaginable, frequently split across several encoded
  words in the middle of a multi-byte character. A word-by-word decode turns
  such splits into garbage; folding adjacent words first does not.

How:
  1. Tokenise the value into literal segments and encoded words.
  2. Transfer-decode each word (``B`` base64, ``Q`` quoted-printable variant).
     Words with an unknown encoding letter or an undecodable payload stay
     literal text.
  3. Drop whitespace-only gaps between two encoded words (RFC 2047 6.2).
  4. Merge consecutive words sharing charset and encoding letter so their
     bytes are converted as one run.
  5. Convert every run through :class:`~mailpart.core.charset.CharsetConverter`
     and concatenate with the literal segments in original order.

Interfaces:
  :class:`EncodedWordDecoder`, :class:`EncodedWordToken`, :func:`decode`,
  :func:`decode_subject`.

Invariants & Safety:
  - ``decode(None)`` is ``None``; decoding never raises.
  - Literal segments are never charset-converted. ``bytes`` input is repaired
    at the byte level, ``str`` input is passed through verbatim.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Union

from ..config.loader import get_runtime_config
from ..config.schema import DecodingSettings
from .charset import CharsetConverter
from .transfer import decode_b, decode_q

ENCODED_WORD = re.compile(r"=\?(?P<charset>[^?\s]+)\?(?P<encoding>[^?\s]+)\?(?P<payload>[^?]*)\?=")
_WHITESPACE = re.compile(r"\s+")

HeaderValue = Union[str, bytes, bytearray]


@dataclass(frozen=True)
class EncodedWordToken:
    """A parsed encoded word; ``data`` holds the transfer-decoded payload."""

    charset: str
    encoding: str
    payload: str
    data: bytes

    def folds_with(self, other: "EncodedWordToken") -> bool:
        return self.encoding == other.encoding and self.charset.lower() == other.charset.lower()


@dataclass(frozen=True)
class _Literal:
    text: str


def _transfer_decode(encoding: str, payload: str) -> bytes:
    if encoding == "B":
        return decode_b(payload)
    return decode_q(payload)


def tokenize(text: str) -> List[Union[_Literal, EncodedWordToken]]:
    """Split ``text`` into literal segments and decodable encoded words."""

    pieces: List[Union[_Literal, EncodedWordToken]] = []
    position = 0
    for match in ENCODED_WORD.finditer(text):
        encoding = match["encoding"].upper()
        if encoding not in ("B", "Q"):
            continue
        try:
            data = _transfer_decode(encoding, match["payload"])
        except ValueError:
            continue
        if match.start() > position:
            pieces.append(_Literal(text[position:match.start()]))
        pieces.append(EncodedWordToken(match["charset"], encoding, match["payload"], data))
        position = match.end()
    if position < len(text):
        pieces.append(_Literal(text[position:]))
    return pieces


def _fold(pieces: List[Union[_Literal, EncodedWordToken]]) -> List[Union[_Literal, EncodedWordToken]]:
    folded: List[Union[_Literal, EncodedWordToken]] = []
    for index, piece in enumerate(pieces):
        if isinstance(piece, _Literal):
            between_words = (
                0 < index < len(pieces) - 1
                and isinstance(pieces[index - 1], EncodedWordToken)
                and isinstance(pieces[index + 1], EncodedWordToken)
            )
            if between_words and not piece.text.strip():
                continue
            folded.append(piece)
            continue
        previous = folded[-1] if folded else None
        if isinstance(previous, EncodedWordToken) and previous.folds_with(piece):
            folded[-1] = EncodedWordToken(
                previous.charset,
                previous.encoding,
                previous.payload + piece.payload,
                previous.data + piece.data,
            )
        else:
            folded.append(piece)
    return folded


class EncodedWordDecoder:
    """Decode header values containing RFC 2047 encoded words.

    Args:
      settings: Decoding settings; defaults to the runtime configuration.
      converter: Charset converter; built from ``settings`` when omitted.
    """

    def __init__(
        self,
        settings: Optional[DecodingSettings] = None,
        converter: Optional[CharsetConverter] = None,
    ) -> None:
        self.settings = settings or get_runtime_config().decoding
        self.converter = converter or CharsetConverter(self.settings)

    def decode(self, value: Optional[HeaderValue], target_charset: Optional[str] = None) -> Optional[str]:
        """Decode ``value`` into the target charset.

        Args:
          value: Header value; ``bytes`` when the raw octets are not known to
            be valid in the caller's charset.
          target_charset: Desired charset; defaults to the configured target.

        Returns:
          The decoded string, or ``None`` when ``value`` is ``None``.
        """

        if value is None:
            return None
        raw_literals = isinstance(value, (bytes, bytearray))
        text = bytes(value).decode("utf-8", "surrogateescape") if raw_literals else value
        target = self.converter.target_codec(target_charset)
        output: List[str] = []
        for piece in _fold(tokenize(text)):
            if isinstance(piece, EncodedWordToken):
                output.append(self.converter.convert(piece.data, piece.charset, target))
            elif raw_literals:
                output.append(self.converter.repair_as(piece.text.encode("utf-8", "surrogateescape"), target))
            else:
                output.append(piece.text)
        return "".join(output)

    def decode_subject(
        self,
        value: Optional[HeaderValue],
        target_charset: Optional[str] = None,
        max_length: Optional[int] = None,
    ) -> Optional[str]:
        """Decode a subject for use as a filename stem.

        Whitespace runs collapse to one space and the result is cut to
        ``max_length`` characters (``subject_max_length`` by default).
        """

        decoded = self.decode(value, target_charset)
        if decoded is None:
            return None
        limit = max_length if max_length is not None else self.settings.subject_max_length
        return _WHITESPACE.sub(" ", decoded).strip()[:limit].strip()


def decode(value: Optional[HeaderValue], target_charset: Optional[str] = None) -> Optional[str]:
    """Decode ``value`` with a decoder built from the runtime configuration."""

    return EncodedWordDecoder().decode(value, target_charset)


def decode_subject(
    value: Optional[HeaderValue],
    target_charset: Optional[str] = None,
    max_length: Optional[int] = None,
) -> Optional[str]:
    """Decode, collapse, and truncate a subject line."""

    return EncodedWordDecoder().decode_subject(value, target_charset, max_length)
