"""IMAP adapter exports.

The decoding core consumes :class:`~mailpart.core.source.PartSource`; this
package supplies the implementation backed by ``imapclient``.
"""

from .client import ImapConfig, MailPartImapClient
from .source import ImapPartSource, structure_from_bodystructure

__all__ = [
    "ImapConfig",
    "MailPartImapClient",
    "ImapPartSource",
    "structure_from_bodystructure",
]
