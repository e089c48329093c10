"""
Module: mailpart.__init__

What:
  Aggregate package exports for the mailpart toolkit, which decodes headers,
  attachment names, and attachment bodies of messages read from an IMAP
  mailbox.

Why:
  Importers build CLI commands and scripts on top of these namespace segments
  and should not depend on the private module layout.

How:
  Provide an explicit ``__all__`` enumerating the public subpackages.

Interfaces:
  - config: Runtime settings schema and loader.
  - core: Byte repair, charset conversion, encoded words, structures,
    transfer decoding, and attachments.
  - imap: ``imapclient``-backed part source.
  - utils: JSON logging.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "core",
    "imap",
    "utils",
]
