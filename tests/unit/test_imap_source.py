"""
Module: tests/unit/test_imap_source.py

What:
    Verify the IMAP adapter: connection lifecycle through the fake backend,
    ``BODY.PEEK`` section fetches, ``BODYSTRUCTURE`` conversion for single-part,
    multipart, and embedded-message layouts, and end-to-end attachment saving
    over IMAP.

Why:
    ``imapclient`` returns positional tuples whose layout depends on the media
    type; an off-by-one here silently turns sizes into encodings.
"""

import base64

import pytest

from mailpart.core.attachment import attachments_of
from mailpart.core.structure import MimeType, TransferEncoding
from mailpart.imap.source import ImapPartSource, structure_from_bodystructure

TEXT_PART = (b"TEXT", b"PLAIN", (b"CHARSET", b"utf-8"), None, None, b"7BIT", 12, 1, None, None, None, None)
PDF_PART = (
    b"APPLICATION",
    b"PDF",
    (b"NAME", b"=?UTF-8?Q?r=C3=A9sum=C3=A9.pdf?="),
    None,
    None,
    b"BASE64",
    20,
    None,
    (b"ATTACHMENT", (b"FILENAME*", b"UTF-8''r%C3%A9sum%C3%A9.pdf")),
    None,
    None,
)
EMBEDDED_PART = (
    b"MESSAGE",
    b"RFC822",
    None,
    None,
    None,
    b"7BIT",
    300,
    (None, b"Forwarded", None, None, None, None, None, None, None, None),
    ([TEXT_PART, TEXT_PART], b"ALTERNATIVE", None, None, None, None),
    10,
    None,
    (b"INLINE", None),
    None,
    None,
)
MIXED = ([TEXT_PART, PDF_PART, EMBEDDED_PART], b"MIXED", (b"BOUNDARY", b"xyz"), None, None, None)


def test_single_part_conversion():
    descriptor = structure_from_bodystructure(TEXT_PART)
    assert descriptor.type is MimeType.TEXT
    assert descriptor.subtype == "PLAIN"
    assert descriptor.encoding is TransferEncoding.SEVEN_BIT
    assert descriptor.size == 12
    assert descriptor.parameter("charset") == "utf-8"
    assert descriptor.disposition is None


def test_attachment_disposition_conversion():
    descriptor = structure_from_bodystructure(PDF_PART)
    assert descriptor.encoding is TransferEncoding.BASE64
    assert descriptor.disposition == "attachment"
    assert descriptor.is_attachment_disposition
    assert descriptor.parameter("filename*") == "UTF-8''r%C3%A9sum%C3%A9.pdf"


def test_multipart_and_embedded_message_conversion():
    descriptor = structure_from_bodystructure(MIXED)
    assert descriptor.is_multipart
    assert descriptor.subtype == "MIXED"
    assert descriptor.parameter("boundary") == "xyz"
    embedded = descriptor.parts[2]
    assert embedded.is_embedded_message
    assert embedded.size == 300
    assert embedded.disposition == "inline"
    assert embedded.parts[0].is_multipart
    assert [section for section, _ in descriptor.walk()] == ["1", "2", "3", "3.1", "3.2"]


def test_client_selects_default_mailbox_read_only(imap_client):
    _client, backend = imap_client
    assert backend.logged_in
    assert backend.selected == "INBOX"
    assert backend.readonly is True


def test_part_source_fetches_with_peek(imap_client):
    client, backend = imap_client
    backend.add_message(
        5,
        MIXED,
        {
            "2": b"SGVsbG8=",
            "3.MIME": b"Content-Type: message/rfc822\r\n\r\n",
            "3.HEADER": b"Subject: Fwd\r\n\r\n",
            "TEXT": b"whole",
        },
    )
    source = ImapPartSource(client)
    assert source.fetch_part_bytes(5, "2") == b"SGVsbG8="
    assert source.fetch_part_header(5, "3") == b"Content-Type: message/rfc822\r\n\r\n"
    assert source.fetch_message_header(5, "3") == b"Subject: Fwd\r\n\r\n"
    assert source.fetch_whole_message_body(5) == b"whole"
    assert source.structure_of(5).subtype == "MIXED"
    assert backend.requested == [
        "BODY.PEEK[2]",
        "BODY.PEEK[3.MIME]",
        "BODY.PEEK[3.HEADER]",
        "BODY.PEEK[TEXT]",
        "BODYSTRUCTURE",
    ]


def test_iter_part_bytes_uses_partial_fetches(imap_client):
    client, backend = imap_client
    backend.add_message(5, TEXT_PART, {"1": b"0123456789abcdef"})
    chunks = list(ImapPartSource(client, chunk_size=7).iter_part_bytes(5, "1"))
    assert chunks == [b"0123456", b"789abcd", b"ef"]
    assert backend.requested == ["BODY.PEEK[1]<0.7>", "BODY.PEEK[1]<7.7>", "BODY.PEEK[1]<14.7>"]


def test_iter_part_bytes_stops_on_empty_reply(imap_client):
    client, backend = imap_client
    backend.add_message(5, TEXT_PART, {"1": b"01234567"})
    chunks = list(ImapPartSource(client, chunk_size=4).iter_part_bytes(5, "1"))
    assert chunks == [b"0123", b"4567"]
    assert len(backend.requested) == 3


def test_iter_part_bytes_chunk_size_defaults_to_configuration(imap_client):
    client, backend = imap_client
    backend.add_message(5, TEXT_PART, {"1": b"0123456789"})
    assert list(ImapPartSource(client).iter_part_bytes(5, "1")) == [b"0123456", b"789"]


def test_iter_part_bytes_missing_section_raises(imap_client):
    client, backend = imap_client
    backend.add_message(5, TEXT_PART, {})
    with pytest.raises(RuntimeError):
        list(ImapPartSource(client).iter_part_bytes(5, "9"))


def test_part_source_missing_section_raises(imap_client):
    client, backend = imap_client
    backend.add_message(5, TEXT_PART, {})
    with pytest.raises(RuntimeError):
        ImapPartSource(client).fetch_part_bytes(5, "9")
    with pytest.raises(RuntimeError):
        ImapPartSource(client).structure_of(99)


def test_attachments_over_imap(imap_client, tmp_path):
    client, backend = imap_client
    content = b"%PDF-1.4 fake"
    backend.add_message(
        8,
        MIXED,
        {
            "2": base64.encodebytes(content),
            "3.MIME": b"Content-Type: message/rfc822\r\nSubject: =?UTF-8?B?0J/RgNC40LLQtdGC?=\r\n\r\n",
            "3": b"Subject: ignored\r\n\r\nbody\r\n",
        },
    )
    found = attachments_of(ImapPartSource(client), 8)
    assert [(item.part_id, item.filename) for item in found] == [("2", "résumé.pdf"), ("3", "Привет.eml")]
    assert found[0].save_to_directory(tmp_path)
    assert (tmp_path / "résumé.pdf").read_bytes() == content


def test_embedded_message_over_imap_reads_header_then_streams(imap_client, tmp_path):
    client, backend = imap_client
    embedded = b"From: a@example.com\r\nSubject: Quarterly\r\n\r\nbody of the forwarded message\r\n"
    backend.add_message(
        8,
        MIXED,
        {
            "3.MIME": b"Content-Type: message/rfc822\r\n\r\n",
            "3.HEADER": b"From: a@example.com\r\nSubject: Quarterly\r\n\r\n",
            "3": embedded,
        },
    )
    found = attachments_of(ImapPartSource(client), 8)
    assert [(item.part_id, item.filename) for item in found] == [("2", "résumé.pdf"), ("3", "Quarterly.eml")]
    assert "BODY.PEEK[3]" not in backend.requested
    assert found[1].save_to_directory(tmp_path)
    saved = (tmp_path / "Quarterly.eml").read_bytes()
    assert saved == b"Content-Type: message/rfc822\r\n\r\n" + embedded
    assert "BODY.PEEK[3]" not in backend.requested
    assert "BODY.PEEK[3]<0.7>" in backend.requested
