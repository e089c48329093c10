"""
Module: tests/unit/test_charset.py

What:
    Validate the charset conversion strategy chain: unlabelled and
    self-labelled payloads go through byte repair, legacy labels through the
    codec registry and aliases, and everything else degrades to a repaired
    read as the target charset.

Why:
    Conversion must never raise. These tests pin which strategy answers for
    each kind of label so heuristics can be added without silent behaviour
    changes.
"""

import pytest

from mailpart.config.schema import DecodingSettings
from mailpart.core.charset import (
    POLICIES,
    CharsetConverter,
    convert,
    is_utf8_family,
    repair_as_target,
)


@pytest.fixture
def converter() -> CharsetConverter:
    return CharsetConverter(DecodingSettings())


@pytest.mark.parametrize("label", ["utf-8", "UTF-8", "utf8", "UTF8", "utf_8"])
def test_is_utf8_family_accepts_spellings(label):
    assert is_utf8_family(label)


@pytest.mark.parametrize("label", [None, "", "latin-1", "koi8-r", "no-such-charset"])
def test_is_utf8_family_rejects_others(label):
    assert not is_utf8_family(label)


@pytest.mark.parametrize(
    "data, charset, expected",
    [
        ("Привет".encode("koi8-r"), "KOI8-R", "Привет"),
        ("Привет".encode("cp1251"), "windows-1251", "Привет"),
        ("Ärger".encode("iso-8859-1"), "ISO-8859-1", "Ärger"),
        ("Łódź".encode("iso-8859-2"), "iso-8859-2", "Łódź"),
        ("中文".encode("gb18030"), "GB2312", "中文"),
        ("한국어".encode("cp949"), "ks_c_5601-1987", "한국어"),
    ],
)
def test_convert_legacy_charsets(converter, data, charset, expected):
    assert converter.convert(data, charset, "UTF-8") == expected


def test_convert_unlabelled_bytes_are_repaired(converter):
    assert converter.convert(b"ab\x97cd", None, "UTF-8") == "ab?cd"
    assert converter.convert(b"ab\x97cd", "", "UTF-8") == "ab?cd"


def test_convert_mislabelled_utf8_is_repaired_not_transcoded(converter):
    data = b"\xcf\xf0\xe8\xec\xe5\xf0 \xef\xeb\xe0\xed\xe0.pdf"
    assert converter.convert(data, "UTF-8", "UTF-8") == "?????? ?????.pdf"


def test_convert_valid_utf8_label_variants(converter):
    data = "Grüße".encode("utf-8")
    assert converter.convert(data, "utf8", "UTF-8") == "Grüße"


def test_convert_unknown_charset_falls_back_to_repair(converter):
    data = "naïve".encode("utf-8") + b"\xff"
    assert converter.convert(data, "x-does-not-exist", "UTF-8") == "naïve?"


def test_convert_non_text_codec_falls_back_to_repair(converter):
    assert converter.convert(b"hello", "base64", "UTF-8") == "hello"


def test_convert_undecodable_bytes_fall_back_to_repair(converter):
    assert converter.convert(b"ok\xff", "ascii", "UTF-8") == "ok?"


def test_convert_narrows_to_non_utf8_target(converter):
    data = "Ünïcødé €".encode("utf-8")
    result = converter.convert(data, "UTF-8", "ISO-8859-1")
    assert result == "Ünïcødé ?"


def test_convert_unknown_target_degrades_to_utf8(converter):
    assert converter.convert("été".encode("latin-1"), "latin-1", "x-bogus") == "été"


def test_convert_defaults_to_configured_target():
    assert convert("Ελληνικά".encode("iso-8859-7"), "iso-8859-7") == "Ελληνικά"


def test_aliases_can_be_configured():
    settings = DecodingSettings(charset_aliases={"X-Legacy": "cp1251"})
    converter = CharsetConverter(settings)
    assert converter.resolve("x-legacy") == "cp1251"
    assert converter.convert("Да".encode("cp1251"), "X-LEGACY", "UTF-8") == "Да"


def test_resolve_strips_language_suffix(converter):
    assert converter.resolve("utf-8*en") == "utf-8"
    assert converter.resolve("unknown-8bit") == "latin-1"


def test_sniff_policy_prefers_valid_utf8_over_declared_label():
    data = "Größe".encode("utf-8")
    declared = CharsetConverter(DecodingSettings(mislabel_policy="declared"))
    sniffing = CharsetConverter(DecodingSettings(mislabel_policy="sniff"))
    assert declared.convert(data, "iso-8859-1", "UTF-8") == "GrÃ¶Ã\x9fe"
    assert sniffing.convert(data, "iso-8859-1", "UTF-8") == "Größe"


def test_sniff_policy_keeps_declared_charset_for_invalid_utf8():
    sniffing = CharsetConverter(DecodingSettings(mislabel_policy="sniff"))
    assert sniffing.convert("Größe".encode("latin-1"), "iso-8859-1", "UTF-8") == "Größe"


def test_custom_strategy_chain_always_returns_text():
    converter = CharsetConverter(DecodingSettings(), strategies=[lambda *_: None])
    assert converter.convert(b"a\xc3", "latin-1", "UTF-8") == "a?"


def test_policies_end_with_repair():
    for chain in POLICIES.values():
        assert chain[-1] is repair_as_target
