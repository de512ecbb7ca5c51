"""Inbox listing: the newest messages with their summary headers."""

import email
import logging
from email.policy import default as email_policy
from email.utils import parsedate_to_datetime

from .catalog import normalize_date
from .models import MailSummary


logger = logging.getLogger(__name__)

SUMMARY_FIELDS = "FROM TO SUBJECT DATE"
DEFAULT_LIMIT = 10


def parse_summary(uid: int, header: bytes) -> MailSummary:
    msg = email.message_from_bytes(header, policy=email_policy)
    date = None
    if msg["Date"]:
        try:
            date = parsedate_to_datetime(str(msg["Date"]))
        except (TypeError, ValueError):
            pass
    return MailSummary(
        id=uid,
        sender=str(msg.get("From", "") or ""),
        to=str(msg.get("To", "") or ""),
        subject=str(msg.get("Subject", "") or ""),
        date=normalize_date(date),
    )


def list_messages(session, keyword: str | None = None, limit: int = DEFAULT_LIMIT) -> list[MailSummary]:
    """Newest ``limit`` messages (highest UIDs first), optionally filtered by subject."""
    if limit <= 0:
        return []
    uids = session.search_subject(keyword)
    uids = list(reversed(uids[-limit:]))
    if not uids:
        return []
    headers = session.fetch_headers(uids, SUMMARY_FIELDS)
    missing = [uid for uid in uids if uid not in headers]
    if missing:
        logger.debug("No headers returned for %s", missing)
    return [parse_summary(uid, headers[uid]) for uid in uids if uid in headers]
