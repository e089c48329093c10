"""Pytest fixtures for unit tests requiring part sources or IMAP fakes.

What:
  Make ``tests/unit`` importable for :mod:`fakes` and expose fixtures built on
  :class:`FakePartSource` and :class:`FakeImapBackend`.

How:
  ``imap_client`` monkeypatches ``mailpart.imap.client.IMAPClient`` to return
  the fake backend and yields the client inside its context manager so the
  login/select/logout flow mirrors production.

Interfaces:
  :func:`part_source`, :func:`imap_client` (pytest fixtures).
"""

import sys
from pathlib import Path

import pytest

from mailpart.imap.client import ImapConfig, MailPartImapClient

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend, FakePartSource


@pytest.fixture
def part_source() -> FakePartSource:
    """Return an empty counting part source."""

    return FakePartSource()


@pytest.fixture
def imap_client(monkeypatch: pytest.MonkeyPatch):
    """Yield ``(MailPartImapClient, FakeImapBackend)`` connected to the fake.

    Args:
      monkeypatch: Pytest helper used to replace the IMAP client constructor.
    """

    backend = FakeImapBackend()
    monkeypatch.setattr("mailpart.imap.client.IMAPClient", lambda host, port, ssl: backend)
    config = ImapConfig(host="localhost", username="user", password="pass")
    with MailPartImapClient(config) as client:
        yield client, backend
