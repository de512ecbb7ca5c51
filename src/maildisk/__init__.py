"""Use a mailbox as a file store: one tagged message per file."""

import logging

from .config import AccountConfig, ServerConfig, load_config
from .errors import Result, StoreError
from .imap import IMAPSession
from .models import AttachmentRef, DownloadedObject, MailSummary, StoredObject, UploadReceipt
from .store import ObjectStore

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AccountConfig",
    "AttachmentRef",
    "DownloadedObject",
    "IMAPSession",
    "MailSummary",
    "ObjectStore",
    "Result",
    "ServerConfig",
    "StoreError",
    "StoredObject",
    "UploadReceipt",
    "load_config",
]
