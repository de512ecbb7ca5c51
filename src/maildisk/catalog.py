"""List stored objects: search, batched fetch, per-message assembly."""

import email
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.policy import default as email_policy
from email.utils import parsedate_to_datetime
from enum import Enum

from .errors import StructureError
from .imap import FetchResponse
from .locator import locate
from .models import StoredObject
from .structure import Node


logger = logging.getLogger(__name__)


class PendingState(Enum):
    AWAITING_HEADER = "awaiting-header"
    AWAITING_STRUCTURE = "awaiting-structure"
    COMPLETE = "complete"


@dataclass
class PendingMessage:
    """Accumulates the FETCH pieces of one message until all have arrived."""
    uid: int
    header: bytes | None = None
    structure: Node | None = None
    has_structure: bool = False
    structure_error: StructureError | None = None
    internaldate: datetime | None = None

    @property
    def state(self) -> PendingState:
        if self.header is None:
            return PendingState.AWAITING_HEADER
        if not self.has_structure:
            return PendingState.AWAITING_STRUCTURE
        return PendingState.COMPLETE

    def feed(self, response: FetchResponse) -> bool:
        """Merge one response. Returns True when this completes the message."""
        before = self.state
        if response.header is not None:
            self.header = response.header
        if response.has_structure:
            self.has_structure = True
            self.structure = response.structure
            self.structure_error = response.structure_error
        if response.internaldate is not None:
            self.internaldate = response.internaldate
        return before is not PendingState.COMPLETE and self.state is PendingState.COMPLETE


def normalize_date(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def strip_tag(subject: str, tag: str) -> str:
    return subject.replace(tag, "").strip()


def finalize(pending: PendingMessage, tag: str) -> StoredObject | None:
    """Build a StoredObject, or None if the message isn't a store object.

    Raises StructureError if the structure was unreadable or an attachment
    can't be located.
    """
    msg = email.message_from_bytes(pending.header or b"", policy=email_policy)
    subject = str(msg.get("Subject", "") or "")
    if tag not in subject:
        return None
    if pending.structure_error is not None:
        raise pending.structure_error

    attachments = locate(pending.structure)
    if not attachments:
        return None

    date = None
    if msg["Date"]:
        try:
            date = parsedate_to_datetime(str(msg["Date"]))
        except (TypeError, ValueError):
            pass
    date = normalize_date(date or pending.internaldate)

    return StoredObject(
        id=pending.uid,
        name=strip_tag(subject, tag),
        date=date,
        attachments=attachments,
    )


def assemble(session, uids: list[int], tag: str) -> list[StoredObject]:
    """Fetch headers + structure for ``uids`` and return store objects in UID order."""
    pending = {uid: PendingMessage(uid) for uid in uids}
    objects: dict[int, StoredObject] = {}

    for response in session.fetch_summaries(uids):
        message = pending.get(response.uid)
        if message is None:
            continue
        if not message.feed(response):
            continue
        try:
            obj = finalize(message, tag)
        except StructureError as e:
            logger.warning("Skipping message %s: %s", message.uid, e)
            continue
        if obj is not None:
            objects[obj.id] = obj

    incomplete = [m.uid for m in pending.values() if m.state is not PendingState.COMPLETE]
    if incomplete:
        logger.debug("Incomplete FETCH data for %s; skipped", incomplete)
    return [objects[uid] for uid in sorted(objects)]


def list_all(
    session,
    tag: str,
    keyword: str | None = None,
    limit: int | None = None,
) -> list[StoredObject]:
    """List store objects newest first.

    With ``limit``, the N highest-UID objects are returned (still newest
    first), not the N oldest.
    """
    uids = session.search_subject(tag, keyword)
    logger.debug("Search %r/%r matched %d messages", tag, keyword, len(uids))
    if not uids:
        return []

    objects = assemble(session, uids, tag)
    if limit is not None:
        objects = objects[-limit:] if limit > 0 else []
    return list(reversed(objects))


def fetch_object(session, uid: int, tag: str) -> StoredObject | None:
    """Fetch one message as a store object, or None if it isn't one."""
    objects = assemble(session, [uid], tag)
    return objects[0] if objects else None
