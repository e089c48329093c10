"""Decoding core of mailpart.

What:
  Re-export the byte repair, charset conversion, encoded-word decoding,
  structure model, transfer decoding, and attachment assembly APIs.

Why:
  Callers such as the CLI work with one ``from mailpart.core import ...``
  facade while the modules stay small and individually testable.

Interfaces:
  ``fix``, ``CharsetConverter``, ``convert``, ``EncodedWordDecoder``,
  ``decode``, ``decode_subject``, ``StructureDescriptor``, ``MimeType``,
  ``TransferEncoding``, ``ParameterList``, ``StructureError``,
  ``decode_body``, ``stream_decoder_for``, ``PartSource``, ``Attachment``,
  ``attachments_of``.
"""

from .attachment import Attachment, attachments_of
from .bytefix import fix
from .charset import CharsetConverter, convert
from .encoded_words import EncodedWordDecoder, decode, decode_subject
from .source import PartSource, StreamingPartSource
from .structure import MimeType, ParameterList, StructureDescriptor, StructureError, TransferEncoding
from .transfer import decode_body, stream_decoder_for

__all__ = [
    "fix",
    "CharsetConverter",
    "convert",
    "EncodedWordDecoder",
    "decode",
    "decode_subject",
    "StructureDescriptor",
    "MimeType",
    "TransferEncoding",
    "ParameterList",
    "StructureError",
    "decode_body",
    "stream_decoder_for",
    "PartSource",
    "StreamingPartSource",
    "Attachment",
    "attachments_of",
]
