"""ObjectStore: list, upload, download and delete stored files.

Also lists the plain inbox and sends ordinary mail. Every public method
returns a ``Result`` instead of raising; mailbox operations open their own
session (connect, select, act, logout).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from .catalog import fetch_object, list_all
from .config import AccountConfig, require_account
from .decoding import decode
from .errors import NotFoundError, Result, StoreError
from .imap import DELETED, IMAPSession
from .inbox import DEFAULT_LIMIT, list_messages
from .locator import locate
from .models import DEFAULT_MEDIA_TYPE, DownloadedObject, MailSummary, StoredObject, UploadReceipt
from .smtp import build_mail, build_object_message, send_message


logger = logging.getLogger(__name__)

UNNAMED = "unnamed"
NO_SUBJECT = "(no subject)"


def download_object(session, uid: int) -> DownloadedObject:
    """Fetch the structure, locate the first attachment, then fetch and decode that part.

    Only the first attachment is returned; objects are single-attachment by
    convention and further attachments are ignored.
    """
    response = session.fetch_structure(uid)
    attachments = locate(response.structure)
    if not attachments:
        raise NotFoundError(f"Message {uid} has no attachments")

    ref = attachments[0]
    if len(attachments) > 1:
        logger.debug("Message %s has %d attachments; using %r", uid, len(attachments), ref.name)

    raw = session.fetch_part(uid, ref.part_locator)
    data = decode(raw, ref.transfer_encoding)
    return DownloadedObject(
        data=data,
        filename=ref.name,
        media_type=ref.media_type or DEFAULT_MEDIA_TYPE,
    )


def delete_object(session, uid: int, tag: str) -> StoredObject:
    """Flag a store object deleted and expunge it. The session must be read-write."""
    obj = fetch_object(session, uid, tag)
    if obj is None:
        raise NotFoundError(f"No stored object with id {uid}")
    if not session.add_flags(uid, [DELETED]):
        logger.debug("Server did not echo flags for message %s", uid)
    session.expunge(uid)
    return obj


class ObjectStore:
    """Facade over one mail account used as a file store."""

    def __init__(
        self,
        account: AccountConfig | None,
        session_factory=None,
        sender=None,
        logger: logging.Logger | None = None,
    ):
        self.account = account
        self.session_factory = session_factory or IMAPSession.open
        self.sender = sender or send_message
        self.logger = logger or logging.getLogger(__name__)

    @contextmanager
    def session(self, readonly: bool = True):
        """Open a session with the store mailbox selected; always logs out."""
        account = require_account(self.account)
        with self.session_factory(account) as session:
            session.select_folder(account.mailbox, readonly=readonly)
            yield session

    def _run(self, operation: str, func) -> Result:
        try:
            value = func()
        except StoreError as e:
            self.logger.warning("%s failed (%s): %s", operation, e.kind, e.message)
            return Result(error=e)
        except Exception as e:
            self.logger.exception("%s failed unexpectedly", operation)
            return Result(error=StoreError(f"{operation} failed: {e}"))
        return Result(value=value)

    def list(self, keyword: str | None = None, limit: int | None = None) -> Result[list[StoredObject]]:
        """List stored objects, newest first."""
        def run():
            with self.session() as session:
                return list_all(session, self.account.tag, keyword=keyword, limit=limit)
        return self._run("list", run)

    def download(self, object_id: int) -> Result[DownloadedObject]:
        def run():
            with self.session() as session:
                obj = download_object(session, object_id)
            self.logger.info("Downloaded %s (%d bytes) from message %s", obj.filename, obj.size, object_id)
            return obj
        return self._run("download", run)

    def upload(self, data: bytes, name: str) -> Result[UploadReceipt]:
        """Store ``data`` as a new object named ``name``."""
        def run():
            filename = name.strip() or UNNAMED
            account = require_account(self.account)
            if account.transport == "smtp":
                require_account(account, smtp=True)
            msg = build_object_message(account, data, filename)
            uid = None
            if account.transport == "append":
                with self.session(readonly=False) as session:
                    uid = session.append(account.mailbox, msg.as_bytes())
            else:
                self.sender(account, msg)
            self.logger.info("Uploaded %s (%d bytes)", filename, len(data))
            return UploadReceipt(filename=filename, size=len(data), id=uid)
        return self._run("upload", run)

    def delete(self, object_id: int) -> Result[int]:
        def run():
            with self.session(readonly=False) as session:
                obj = delete_object(session, object_id, self.account.tag)
            self.logger.info("Deleted %s (message %s)", obj.name, object_id)
            return object_id
        return self._run("delete", run)

    def messages(self, keyword: str | None = None, limit: int = DEFAULT_LIMIT) -> Result[list[MailSummary]]:
        """Newest messages in the mailbox, stored files or not."""
        def run():
            with self.session() as session:
                return list_messages(session, keyword=keyword, limit=limit)
        return self._run("messages", run)

    def send(
        self,
        to: str,
        subject: str | None = None,
        body: str = "",
        attachments: list[tuple[str, bytes]] | None = None,
    ) -> Result[str]:
        """Send an ordinary message. Returns its Message-ID."""
        def run():
            account = require_account(self.account, smtp=True)
            msg = build_mail(account, to, subject or NO_SUBJECT, body, attachments or [])
            self.sender(account, msg)
            self.logger.info("Sent %r to %s", subject or NO_SUBJECT, to)
            return msg["Message-ID"]
        return self._run("send", run)
