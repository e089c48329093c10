"""Read-only IMAP session used to feed the decoding core.

What:
  Wrap the third-party ``imapclient`` library with configuration defaults and
  a context manager that connects, logs in, selects a mailbox, and logs out.

Why:
  The decoding core only needs raw bytes and structure descriptors. Keeping
  the connection lifecycle in one small class means the rest of the project
  never touches sockets, and attachments are fetched with ``BODY.PEEK`` from a
  read-only selection so reading never flips ``\\Seen`` flags.

How:
  :class:`ImapConfig` fills unset options from the runtime configuration.
  :class:`MailPartImapClient` instantiates ``IMAPClient`` in
  :meth:`~MailPartImapClient.__enter__`, selects the configured folder, and
  exposes UID-based :meth:`~MailPartImapClient.fetch`.

Interfaces:
  :class:`ImapConfig`, :class:`MailPartImapClient`.

Invariants & Safety:
  - All fetches are UID-based.
  - The folder is selected read-only unless ``imap.readonly`` is false.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from imapclient import IMAPClient

from ..config.loader import get_runtime_config
from ..utils.logging import get_logger

LOGGER = get_logger("mailpart.imap")


@dataclass
class ImapConfig:
    """Connection parameters for an IMAP server.

    Attributes:
      host: IMAP hostname.
      username: Login credential.
      password: Password or app-specific token.
      port: IMAP port (defaults to 993).
      ssl: Whether to use TLS.
      folder: Mailbox to select; defaults to ``imap.default_mailbox``.
      readonly: Select folders read-only; defaults to ``imap.readonly``.
    """

    host: str
    username: str
    password: str
    port: int = 993
    ssl: bool = True
    folder: Optional[str] = None
    readonly: Optional[bool] = None

    def __post_init__(self) -> None:
        settings = get_runtime_config()
        if self.folder is None:
            self.folder = settings.imap.default_mailbox
        if self.readonly is None:
            self.readonly = settings.imap.readonly


class MailPartImapClient:
    """Context manager owning a single ``IMAPClient`` connection.

    What:
      Mediates login, mailbox selection, and UID fetches for the part source.

    Why:
      Ensures the connection is always logged out, even when decoding or
      saving raises halfway through a message.
    """

    def __init__(self, config: ImapConfig):
        self._config = config
        self._client: Optional[IMAPClient] = None

    def __enter__(self) -> "MailPartImapClient":
        """Connect, log in, and select the configured folder.

        Raises:
          RuntimeError: When no folder is configured.
        """

        if self._config.folder is None:
            raise RuntimeError("Default mailbox not configured")
        self._client = IMAPClient(self._config.host, port=self._config.port, ssl=self._config.ssl)
        self._client.login(self._config.username, self._config.password)
        self._client.select_folder(self._config.folder, readonly=bool(self._config.readonly))
        LOGGER.info("imap_connected", host=self._config.host, folder=self._config.folder)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._client is None:
            return
        try:
            self._client.logout()
        finally:
            self._client = None

    @property
    def client(self) -> IMAPClient:
        """Return the connected ``IMAPClient``.

        Raises:
          RuntimeError: If accessed before :meth:`__enter__`.
        """

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    def fetch(self, uids: Iterable[int], data: List[str]) -> dict:
        """Fetch ``data`` items for ``uids`` from the selected mailbox."""

        return self.client.fetch(list(uids), data)
