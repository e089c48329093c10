"""mailpart command-line interface.

What:
  Provide a Typer-based entry point exposing the decoding core to operators:
  ``decode-header`` and ``fix-bytes`` work offline, ``list-attachments`` and
  ``save-attachments`` read a message over IMAP.

Why:
  Mislabelled headers and broken attachments are usually investigated by hand
  against a live mailbox. A CLI wired to the same objects the library uses
  reproduces exactly what an integration would see.

How:
  A Typer callback loads the runtime configuration (optionally from
  ``--config``) before any command runs. IMAP commands open a
  :class:`~mailpart.imap.client.MailPartImapClient`, wrap it in an
  :class:`~mailpart.imap.source.ImapPartSource`, and build attachments with
  :func:`~mailpart.core.attachment.attachments_of`.

Interfaces:
  ``app`` (Typer application), ``decode_header``, ``fix_bytes``,
  ``list_attachments``, ``save_attachments``, ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - IMAP folders are selected read-only unless the configuration says
    otherwise; bodies are fetched with ``BODY.PEEK``.
"""
from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from .config.loader import RuntimeConfigError, load_runtime_config
from .core.attachment import Attachment, attachments_of
from .core.bytefix import fix
from .core.encoded_words import EncodedWordDecoder
from .imap.client import ImapConfig, MailPartImapClient
from .imap.source import ImapPartSource


app = typer.Typer(help="Decode MIME headers and attachments from IMAP mailboxes")

LOGGER = logging.getLogger("mailpart.cli")


@app.callback()
def _configure(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to config.yaml; overrides MAILPART_CONFIG_PATH.",
    ),
) -> None:
    """Load the runtime configuration before dispatching a command."""

    try:
        load_runtime_config(config, reload=config is not None)
    except RuntimeConfigError as exc:
        LOGGER.error("config_load_failed: %s", exc)
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


@app.command("decode-header")
def decode_header(
    value: str = typer.Argument(..., help="Raw header value containing encoded words."),
    charset: Optional[str] = typer.Option(None, "--charset", help="Target charset override."),
    subject: bool = typer.Option(False, "--subject", help="Collapse whitespace and truncate."),
) -> None:
    """Print ``value`` with its RFC 2047 encoded words decoded."""

    decoder = EncodedWordDecoder()
    if subject:
        typer.echo(decoder.decode_subject(value, charset))
    else:
        typer.echo(decoder.decode(value, charset))


@app.command("fix-bytes")
def fix_bytes(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    """Write ``path`` to stdout with malformed UTF-8 replaced by ``?``."""

    typer.echo(fix(path.read_bytes()), nl=False)


@contextlib.contextmanager
def _imap_attachments(
    uid: int,
    host: str,
    user: str,
    password: str,
    port: int,
    folder: Optional[str],
) -> Iterator[List[Attachment]]:
    config = ImapConfig(host=host, username=user, password=password, port=port, folder=folder)
    try:
        with MailPartImapClient(config) as client:
            yield attachments_of(ImapPartSource(client), uid)
    except typer.Exit:
        raise
    except Exception as exc:
        LOGGER.exception("imap_failed: %s", exc)
        typer.echo(f"IMAP error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


_HOST = typer.Option(..., "--host", help="IMAP server hostname.")
_USER = typer.Option(..., "--user", help="IMAP login.")
_PASSWORD = typer.Option(..., "--password", envvar="MAILPART_IMAP_PASSWORD", help="IMAP password.")
_PORT = typer.Option(993, "--port", help="IMAP port.")
_FOLDER = typer.Option(None, "--folder", help="Mailbox to read; defaults to imap.default_mailbox.")


@app.command("list-attachments")
def list_attachments(
    uid: int = typer.Argument(..., help="UID of the message."),
    host: str = _HOST,
    user: str = _USER,
    password: str = _PASSWORD,
    port: int = _PORT,
    folder: Optional[str] = _FOLDER,
) -> None:
    """List section, mime type, size, and filename of every attachment."""

    with _imap_attachments(uid, host, user, password, port, folder) as attachments:
        for attachment in attachments:
            size = "-" if attachment.size is None else str(attachment.size)
            typer.echo(
                f"{attachment.part_id or '1'}\t{attachment.mime_type}\t{size}\t{attachment.filename or ''}"
            )


@app.command("save-attachments")
def save_attachments(
    uid: int = typer.Argument(..., help="UID of the message."),
    directory: Path = typer.Argument(..., help="Existing directory receiving the files."),
    host: str = _HOST,
    user: str = _USER,
    password: str = _PASSWORD,
    port: int = _PORT,
    folder: Optional[str] = _FOLDER,
) -> None:
    """Save every named attachment of message ``uid`` into ``directory``.

    What:
      Streams each attachment to ``directory/<filename>``.

    How:
      Attachments without a resolvable filename are skipped with a warning.
      Any failed save makes the command exit with status ``1`` after the
      remaining attachments were attempted.
    """

    if not directory.is_dir():
        typer.echo(f"Not a directory: {directory}", err=True)
        raise typer.Exit(code=1)
    failures = 0
    with _imap_attachments(uid, host, user, password, port, folder) as attachments:
        for attachment in attachments:
            if attachment.filename is None:
                LOGGER.warning("attachment_unnamed section=%s", attachment.part_id)
                continue
            if attachment.save_to_directory(directory):
                typer.echo(attachment.filename)
            else:
                failures += 1
    if failures:
        typer.echo(f"{failures} attachment(s) could not be saved", err=True)
        raise typer.Exit(code=1)


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
