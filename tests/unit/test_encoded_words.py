"""
Module: tests/unit/test_encoded_words.py

What:
    Check RFC 2047 header decoding: passthrough of plain text, B and Q words,
    folding of adjacent words, literal handling of malformed tokens, and the
    subject normalisation used to name embedded messages.

Why:
    Header decoding is where mislabelled charsets and split multi-byte
    characters surface to users; each vector here is a header seen in real
    mail.

Invariants & Safety Rules:
    - ``decode(None)`` is ``None`` and decoding never raises.
    - Whitespace between two encoded words disappears; whitespace next to
      literal text is kept.
"""

import base64

import pytest

from mailpart.config.schema import DecodingSettings
from mailpart.core.encoded_words import EncodedWordDecoder, decode, decode_subject, tokenize


@pytest.fixture
def decoder() -> EncodedWordDecoder:
    return EncodedWordDecoder(DecodingSettings())


def _b(charset: str, data: bytes) -> str:
    return f"=?{charset}?B?{base64.b64encode(data).decode('ascii')}?="


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("", ""),
        ("Just text", "Just text"),
        ("=?US-ASCII?Q?Keith_Moore?= <moore@cs.utk.edu>", "Keith Moore <moore@cs.utk.edu>"),
        (
            "=?ISO-8859-1?Q?Keld_J=F8rn_Simonsen?= <keld@dkuug.dk>",
            "Keld Jørn Simonsen <keld@dkuug.dk>",
        ),
        (
            "=?ISO-8859-1?Q?Andr=E9?= Pirard <PIRARD@vm1.ulg.ac.be>",
            "André Pirard <PIRARD@vm1.ulg.ac.be>",
        ),
        (
            "=?ISO-8859-1?B?SWYgeW91IGNhbiByZWFkIHRoaXMgeW8=?= "
            "=?ISO-8859-2?B?dSB1bmRlcnN0YW5kIHRoZSBleGFtcGxlLg==?=",
            "If you can read this you understand the example.",
        ),
        (
            "=?ISO-8859-1?B?SWYgeW91IGNhbiByZWFkIHRoaXMgeW8=?=\r\n "
            "=?ISO-8859-2?B?dSB1bmRlcnN0YW5kIHRoZSBleGFtcGxlLg==?=",
            "If you can read this you understand the example.",
        ),
        ("=?ISO-8859-1?Q?a?= b =?ISO-8859-1?Q?c?=", "a b c"),
        ("=?iso-8859-1?q?this=20is=20some=20text?=", "this is some text"),
    ],
)
def test_decode_vectors(decoder, value, expected):
    assert decoder.decode(value, "UTF-8") == expected


def test_decode_folds_multibyte_character_split_across_words(decoder):
    raw = "Ж".encode("utf-8")
    value = f"{_b('UTF-8', b'A' + raw[:1])} {_b('utf-8', raw[1:] + b'B')}"
    assert decoder.decode(value, "UTF-8") == "AЖB"


def test_decode_does_not_fold_different_encoding_letters(decoder):
    raw = "Ж".encode("utf-8")
    value = f"{_b('UTF-8', raw[:1])} =?UTF-8?Q?=96?="
    assert decoder.decode(value, "UTF-8") == "??"


def test_decode_mislabelled_utf8_word_is_repaired(decoder):
    value = _b("UTF-8", b"\xcf\xf0\xe8\xec\xe5\xf0 \xef\xeb\xe0\xed\xe0.pdf")
    assert decoder.decode(value, "UTF-8") == "?????? ?????.pdf"


def test_decode_korean_legacy_label_with_cyrillic(decoder):
    value = (
        " =?ks_c_5601-1987?B?ICisqqyzrLSssqymrKKsqqy0rKasray+IKytrKastKyhrMCsu6yq?="
        " =?ks_c_5601-1987?B?rLcgrK+soayzrKasrKywrK6svay3ICKsoqyhrLKspKy1?="
        " =?ks_c_5601-1987?B?rKmsqqyvIiCsrKyxIKylrKqsraymrLIgLSAyMDE5rNQp?="
    )
    expected = ' (ИСТРЕБИТЕЛЬ ЛЕТАЮЩИХ НАСЕКОМЫХ "БАРГУЗИН" КП ДИЛЕР - 2019г)'
    assert decoder.decode(value, "UTF-8") == " " + expected


def test_decode_raw_bytes_repairs_literal_segments(decoder):
    raw = b"\x61\x62\x31\x31\x20\x97\x20\x3f\x3f\x3f\x3f\x3f\x2e\x6a\x70\x67"
    assert decoder.decode(raw, "UTF-8") == "ab11 ? ?????.jpg"


def test_decode_str_literals_pass_through_verbatim(decoder):
    assert decoder.decode("déjà =?UTF-8?Q?vu?=", "UTF-8") == "déjà vu"


@pytest.mark.parametrize(
    "value",
    [
        "=?UTF-8?Q?unterminated",
        "=?UTF-8?X?unknown_letter?=",
        "=?UTF-8?B?not*base64?=",
        "=??Q?no_charset?=",
    ],
)
def test_malformed_words_stay_literal(decoder, value):
    assert decoder.decode(value, "UTF-8") == value


def test_decode_to_non_utf8_target(decoder):
    value = "=?UTF-8?B?" + base64.b64encode("Łódź €".encode("utf-8")).decode() + "?="
    assert decoder.decode(value, "ISO-8859-2") == "Łódź ?"


def test_tokenize_keeps_order_and_payloads():
    pieces = tokenize("a =?UTF-8?Q?b?= c")
    assert [type(piece).__name__ for piece in pieces] == ["_Literal", "EncodedWordToken", "_Literal"]
    assert pieces[1].data == b"b"
    assert pieces[1].encoding == "Q"


def test_decode_subject_collapses_and_truncates(decoder):
    value = "=?UTF-8?Q?Quarterly__report?=\r\n\t and   figures"
    assert decoder.decode_subject(value, "UTF-8") == "Quarterly report and figures"
    assert decoder.decode_subject(value, "UTF-8", max_length=9) == "Quarterly"
    assert decoder.decode_subject(None) is None


def test_decode_subject_uses_configured_length():
    settings = DecodingSettings(subject_max_length=5)
    assert EncodedWordDecoder(settings).decode_subject("abcdefgh") == "abcde"


def test_module_helpers_use_runtime_config():
    assert decode("=?UTF-8?Q?caf=C3=A9?=") == "café"
    assert decode_subject("  spaced   out  ") == "spaced out"
