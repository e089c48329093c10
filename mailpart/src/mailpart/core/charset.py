"""Best-effort conversion of legacy charsets into a target charset.

What:
  Turn a byte buffer labelled with an arbitrary (possibly wrong, possibly
  unknown) charset into a string whose characters are all representable in the
  requested target charset.

Why:
  Mail clients label payloads with KOI8, Windows-125x, ISO-8859-*, GB2312,
  ``ks_c_5601-1987`` and invented names such as ``unknown-8bit``; some declare
  UTF-8 over bytes that are not. Callers need a displayable string in every
  case, never an exception halfway through a header.

How:
  :class:`CharsetConverter` tries an ordered tuple of strategies. Each strategy
  either returns text or ``None`` to pass. The last strategy treats the bytes
  as the target charset and repairs them with :func:`mailpart.core.bytefix.fix`,
  so the chain always produces a result. Which strategies run before the codec
  conversion is decided by ``DecodingSettings.mislabel_policy``.

Interfaces:
  :class:`CharsetConverter`, :func:`convert`, :func:`is_utf8_family`.

Invariants & Safety:
  - :meth:`CharsetConverter.convert` never raises for any byte input.
  - Legacy labels are resolved through ``charset_aliases`` before the codec
    registry is consulted; non-text codecs (``base64``, ``zlib``) are
    rejected by :meth:`bytes.decode` and fall through to repair.
"""
from __future__ import annotations

import codecs
from typing import Callable, Optional, Sequence, Tuple

from ..config.loader import get_runtime_config
from ..config.schema import DecodingSettings
from ..utils.logging import get_logger
from .bytefix import QUESTION_MARK, fix

LOGGER = get_logger("mailpart.charset")

Strategy = Callable[["CharsetConverter", bytes, Optional[str], str], Optional[str]]


def _canonical(label: str) -> str:
    return label.strip().lower().replace("_", "-")


def is_utf8_family(charset: Optional[str]) -> bool:
    """Return ``True`` when ``charset`` names UTF-8 (``utf8``, ``UTF-8``, ...)."""

    if not charset:
        return False
    try:
        return codecs.lookup(charset).name in {"utf-8", "utf-8-sig"}
    except (LookupError, ValueError):
        return False


def repair_unlabelled(converter: "CharsetConverter", data: bytes, source: Optional[str], target: str) -> Optional[str]:
    """Repair payloads that carry no charset label at all."""

    if source and source.strip():
        return None
    return converter.repair_as(data, target)


def repair_self_labelled(converter: "CharsetConverter", data: bytes, source: Optional[str], target: str) -> Optional[str]:
    """Repair payloads already labelled with the UTF-8 target charset.

    A declared UTF-8 payload is only trusted at the byte level; stray
    Windows-125x bytes inside it become ``?`` instead of failing the decode.
    """

    if source is None or not is_utf8_family(target):
        return None
    if _canonical(source) != _canonical(target) and not is_utf8_family(source):
        return None
    return converter.repair_as(data, target)


def sniff_utf8(converter: "CharsetConverter", data: bytes, source: Optional[str], target: str) -> Optional[str]:
    """Accept payloads that are strictly valid, non-ASCII UTF-8 whatever their label."""

    if not is_utf8_family(target) or data.isascii():
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def codec_conversion(converter: "CharsetConverter", data: bytes, source: Optional[str], target: str) -> Optional[str]:
    """Decode through the codec registry, honouring configured aliases."""

    if not source:
        return None
    codec = converter.resolve(source)
    try:
        text = data.decode(codec)
    except UnicodeDecodeError as exc:
        LOGGER.warning("charset_decode_failed", charset=source, position=exc.start)
        return None
    except (LookupError, ValueError):
        LOGGER.warning("charset_unknown", charset=source)
        return None
    return converter.narrow(text, target)


def repair_as_target(converter: "CharsetConverter", data: bytes, source: Optional[str], target: str) -> Optional[str]:
    """Last resort: read the bytes as the target charset itself."""

    return converter.repair_as(data, target)


POLICIES: dict[str, Tuple[Strategy, ...]] = {
    "declared": (repair_unlabelled, repair_self_labelled, codec_conversion, repair_as_target),
    "sniff": (repair_unlabelled, repair_self_labelled, sniff_utf8, codec_conversion, repair_as_target),
}
"""Strategy chains keyed by ``DecodingSettings.mislabel_policy``."""


class CharsetConverter:
    """Convert bytes between charsets through an ordered strategy chain.

    What:
      Holds the decoding settings and the strategy tuple selected by the
      configured mislabel policy.

    Why:
      New legacy heuristics slot in as another strategy without touching the
      existing ones, and tests can pin an exact chain.

    How:
      :meth:`convert` runs each strategy in order and returns the first
      non-``None`` result. :func:`repair_as_target` terminates every built-in
      chain; a custom chain that passes on everything still gets a repaired
      string back.
    """

    def __init__(
        self,
        settings: Optional[DecodingSettings] = None,
        strategies: Optional[Sequence[Strategy]] = None,
    ) -> None:
        self.settings = settings or get_runtime_config().decoding
        self.strategies: Tuple[Strategy, ...] = tuple(
            strategies if strategies is not None else POLICIES[self.settings.mislabel_policy]
        )
        self._aliases = {_canonical(label): codec for label, codec in self.settings.charset_aliases.items()}

    def resolve(self, charset: str) -> str:
        """Map a declared charset label onto a codec name."""

        label = charset.strip()
        # RFC 2231 allows a language suffix: "utf-8*en"
        label = label.split("*", 1)[0]
        return self._aliases.get(_canonical(label), label)

    def target_codec(self, target: Optional[str]) -> str:
        """Return a usable codec for ``target``; unknown targets degrade to UTF-8."""

        candidate = target or self.settings.target_charset
        codec = self.resolve(candidate)
        try:
            "".encode(codec)
        except (LookupError, ValueError):
            LOGGER.warning("target_charset_unknown", charset=candidate)
            return "utf-8"
        return codec

    def narrow(self, text: str, target: str) -> str:
        """Replace characters the target charset cannot represent with ``?``."""

        if is_utf8_family(target):
            return text
        return text.encode(target, QUESTION_MARK).decode(target)

    def repair_as(self, data: bytes, target: str) -> str:
        """Read ``data`` as ``target`` with malformed units replaced by ``?``."""

        if is_utf8_family(target):
            return fix(data).decode("utf-8", QUESTION_MARK)
        return data.decode(target, QUESTION_MARK)

    def convert(self, data: bytes, source_charset: Optional[str] = None, target_charset: Optional[str] = None) -> str:
        """Convert ``data`` from ``source_charset`` into ``target_charset``.

        Args:
          data: Raw bytes to convert.
          source_charset: Declared charset label, possibly empty or bogus.
          target_charset: Desired charset; defaults to the configured target.

        Returns:
          A string representable in the target charset. Never raises.
        """

        data = bytes(data)
        target = self.target_codec(target_charset)
        for strategy in self.strategies:
            result = strategy(self, data, source_charset, target)
            if result is not None:
                return result
        return self.repair_as(data, target)


def convert(data: bytes, source_charset: Optional[str] = None, target_charset: Optional[str] = None) -> str:
    """Convert ``data`` with a converter built from the runtime configuration."""

    return CharsetConverter().convert(data, source_charset, target_charset)
