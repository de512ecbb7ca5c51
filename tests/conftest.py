"""Shared fixtures: an in-memory mailbox behind a stub IMAPClient.

The stub renders FETCH replies as IMAP wire text and hands them to
imapclient's own response parser, so sessions see exactly the types a
real server connection produces.
"""

import email
from email.header import decode_header, make_header
from email.message import Message
from email.policy import compat32
from email.utils import collapse_rfc2231_value
from urllib.parse import quote

import pytest
from imapclient import DELETED
from imapclient.response_parser import parse_fetch_response

from maildisk.config import AccountConfig, ServerConfig
from maildisk.imap import IMAPSession
from maildisk.store import ObjectStore

INTERNALDATE = b'"01-Jan-2024 00:00:00 +0000"'


def decoded_subject(msg: Message) -> str:
    raw = msg.get("Subject", "")
    return str(make_header(decode_header(raw))) if raw else ""


def imap_string(value) -> bytes:
    if value is None:
        return b"NIL"
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return b'"' + text.encode("ascii") + b'"'


def imap_params(pairs) -> bytes:
    """Parameter list; non-ASCII values go out RFC 2231 encoded, as servers pass them through."""
    items = []
    for key, value in pairs:
        value = collapse_rfc2231_value(value)
        if value.isascii():
            items += [imap_string(key), imap_string(value)]
        else:
            items += [imap_string(key + "*"), imap_string("utf-8''" + quote(value, safe=""))]
    return b"(" + b" ".join(items) + b")" if items else b"NIL"


def raw_payload(part: Message) -> bytes:
    return part.get_payload(decode=False).encode("ascii", "surrogateescape")


def bodystructure(part: Message) -> bytes:
    """RFC 3501 BODYSTRUCTURE text for a parsed message."""
    if part.is_multipart():
        children = b"".join(bodystructure(child) for child in part.get_payload())
        return (
            b"(" + children + b" " + imap_string(part.get_content_subtype())
            + b" " + imap_params((part.get_params() or [])[1:]) + b" NIL NIL NIL)"
        )

    payload = raw_payload(part)
    fields = [
        imap_string(part.get_content_maintype()),
        imap_string(part.get_content_subtype()),
        imap_params((part.get_params() or [])[1:]),
        imap_string(part.get("Content-ID")),
        b"NIL",
        imap_string(part.get("Content-Transfer-Encoding", "7bit")),
        str(len(payload)).encode(),
    ]
    if part.get_content_maintype() == "text":
        fields.append(str(payload.count(b"\n")).encode())
    disposition = part.get_content_disposition()
    if disposition:
        params = part.get_params(header="content-disposition")[1:]
        fields += [b"NIL", b"(" + imap_string(disposition) + b" " + imap_params(params) + b")"]
    else:
        fields += [b"NIL", b"NIL"]
    fields += [b"NIL", b"NIL"]
    return b"(" + b" ".join(fields) + b")"


def header_fields(msg: Message, section: str) -> bytes:
    names = section[section.index("(") + 1:section.rindex(")")].lower().split()
    lines = [f"{k}: {v}" for k, v in msg.items() if k.lower() in names]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8", "surrogateescape")


def part_at(msg: Message, section: str) -> Message | None:
    if not msg.is_multipart():
        return msg if section == "1" else None
    part = msg
    for index in section.split("."):
        if not part.is_multipart():
            return None
        children = part.get_payload()
        i = int(index) - 1
        if not 0 <= i < len(children):
            return None
        part = children[i]
    return part


class FakeMailbox:
    """Messages keyed by UID; UIDs only ever grow."""

    def __init__(self):
        self.messages: dict[int, Message] = {}
        self.flags: dict[int, set[bytes]] = {}
        self.next_uid = 1
        self.sessions = 0
        self.clients: list["StubIMAPClient"] = []
        # UID -> BODYSTRUCTURE text served instead of the real one
        self.structures: dict[int, bytes] = {}
        # client method name -> exception it raises
        self.fail: dict[str, Exception] = {}
        # FETCH item prefix -> exception raised when it is requested
        self.fail_fetch: dict[str, Exception] = {}

    def add(self, raw: bytes | Message) -> int:
        if isinstance(raw, Message):
            raw = raw.as_bytes()
        uid = self.next_uid
        self.next_uid += 1
        self.messages[uid] = email.message_from_bytes(raw, policy=compat32)
        self.flags[uid] = set()
        return uid

    def deliver(self, account, msg) -> None:
        """SMTP sender stand-in: the message lands in the account's own mailbox."""
        self.add(msg)

    def fetch_lines(self, seq: int, uid: int, items: list[str]) -> list:
        msg = self.messages[uid]
        head = [b"UID %d" % uid]
        literal = None
        for item in items:
            name = item.upper()
            if name == "INTERNALDATE":
                head.append(b"INTERNALDATE " + INTERNALDATE)
            elif name == "BODYSTRUCTURE":
                structure = self.structures[uid] if uid in self.structures else bodystructure(msg)
                head.append(b"BODYSTRUCTURE " + structure)
            elif name.startswith("BODY.PEEK["):
                section = item[len("BODY.PEEK["):-1]
                if section.upper().startswith("HEADER.FIELDS"):
                    data = header_fields(msg, section)
                else:
                    part = part_at(msg, section)
                    data = raw_payload(part) if part is not None else None
                literal = (f"BODY[{section}]".encode(), data)

        line = b"%d (" % seq + b" ".join(head)
        if literal is None:
            return [line + b")"]
        key, data = literal
        if data is None:
            return [line + b" " + key + b" NIL)"]
        return [(line + b" " + key + b" {%d}" % len(data), data), b")"]

    def session(self, account=None) -> IMAPSession:
        self.sessions += 1
        client = StubIMAPClient(self)
        self.clients.append(client)
        session = IMAPSession("imap.example.com")
        session.attach(client)
        return session


class StubIMAPClient:
    """The slice of imapclient.IMAPClient that IMAPSession uses, over a FakeMailbox."""

    def __init__(self, mailbox: FakeMailbox, capabilities=(b"IMAP4REV1", b"UIDPLUS")):
        self.mailbox = mailbox
        self.capabilities = set(capabilities)
        self.normalise_times = True
        self.readonly = True
        self.logged_out = False
        self.calls: list[tuple] = []

    def _call(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.mailbox.fail:
            raise self.mailbox.fail[name]

    def has_capability(self, capability: str) -> bool:
        return capability.upper().encode() in self.capabilities

    def select_folder(self, folder, readonly=False):
        self._call("select_folder", folder, readonly)
        self.readonly = readonly
        return {b"EXISTS": len(self.mailbox.messages), b"UIDVALIDITY": 1}

    def search(self, criteria, charset=None):
        self._call("search", list(criteria), charset)
        terms = [] if criteria == ["ALL"] else [t.lower() for t in criteria[1::2]]
        return [
            uid for uid, msg in self.mailbox.messages.items()
            if all(t in decoded_subject(msg).lower() for t in terms)
        ]

    def fetch(self, messages, data):
        self._call("fetch", list(messages), list(data))
        for prefix, exc in self.mailbox.fail_fetch.items():
            if any(item.upper().startswith(prefix) for item in data):
                raise exc
        lines = []
        for seq, uid in enumerate(sorted(self.mailbox.messages), 1):
            if uid in messages:
                lines += self.mailbox.fetch_lines(seq, uid, data)
        return parse_fetch_response(lines, self.normalise_times, True)

    def add_flags(self, messages, flags):
        self._call("add_flags", list(messages), list(flags))
        assert not self.readonly
        flagged = {}
        for uid in messages:
            if uid in self.mailbox.messages:
                self.mailbox.flags[uid].update(flags)
                flagged[uid] = tuple(self.mailbox.flags[uid])
        return flagged

    def expunge(self, messages=None):
        self._call("expunge", messages)
        assert not self.readonly
        for uid in list(self.mailbox.messages):
            if DELETED in self.mailbox.flags[uid] and (messages is None or uid in messages):
                del self.mailbox.messages[uid]
                del self.mailbox.flags[uid]

    def append(self, folder, msg, flags=(), msg_time=None):
        self._call("append", folder, msg_time)
        assert not self.readonly
        uid = self.mailbox.add(msg)
        if b"UIDPLUS" in self.capabilities:
            return b"[APPENDUID 1 %d] APPEND completed" % uid
        return b"APPEND completed"

    def logout(self):
        self._call("logout")
        self.logged_out = True

    def shutdown(self):
        self._call("shutdown")


@pytest.fixture
def account():
    return AccountConfig(
        user="me@example.com",
        password="secret",
        imap=ServerConfig("imap.example.com", 993),
        smtp=ServerConfig("smtp.example.com", 465),
    )


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def store(account, mailbox):
    return ObjectStore(account, session_factory=mailbox.session, sender=mailbox.deliver)
