"""IMAP session: one connected, authenticated mailbox dialogue."""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime

from imapclient import DELETED, IMAPClient
from imapclient.exceptions import IMAPClientError
from imapclient.imapclient import SocketTimeout

from .config import AccountConfig, require_account
from .errors import (
    ConnectError,
    FetchError,
    NotFoundError,
    SearchError,
    StructureError,
    UpdateError,
)
from .structure import Node, PartLocator, build_tree


logger = logging.getLogger(__name__)

HEADER_FIELDS = "SUBJECT DATE FROM"
SUMMARY_ITEMS = ["INTERNALDATE", "BODYSTRUCTURE", f"BODY.PEEK[HEADER.FIELDS ({HEADER_FIELDS})]"]
STRUCTURE_ITEMS = ["BODYSTRUCTURE"]

# Keeps each UID FETCH command line short
FETCH_BATCH = 200

# IMAPClientError is imaplib's IMAP4.error (abort and protocol errors
# included); sockets raise OSError, which covers timeouts and SSL errors.
TRANSPORT_ERRORS = (IMAPClientError, OSError)

APPENDUID = re.compile(rb"APPENDUID\s+\d+\s+(\d+)", re.IGNORECASE)


@dataclass
class FetchResponse:
    """FETCH data for one message.

    Any attribute may be missing. ``has_structure`` is set whenever
    BODYSTRUCTURE arrived; if it could not be read, ``structure`` is None
    and ``structure_error`` says why.
    """
    uid: int
    header: bytes | None = None
    structure: Node | None = None
    has_structure: bool = False
    structure_error: StructureError | None = None
    internaldate: datetime | None = None


def _section_key(name: str) -> str:
    return name.upper().replace(" ", "").replace('"', "")


def find_section(attrs: dict, name: str) -> tuple[bool, bytes | None]:
    """Look up a ``BODY[...]`` item, however the server spaced or quoted it.

    ``name`` may stop short of the closing bracket to match by prefix
    (``BODY[HEADER``). A trailing ``<origin>`` on the key is ignored.
    """
    want = _section_key(name)
    for key, value in attrs.items():
        if not isinstance(key, bytes):
            continue
        if _section_key(key.decode("ascii", "replace")).startswith(want):
            return True, value
    return False, None


def batches(uids: list[int], size: int | None = None):
    size = size or FETCH_BATCH
    for start in range(0, len(uids), size):
        yield uids[start:start + size]


class IMAPSession:
    """Mailbox session used by the catalog and the store."""

    def __init__(
        self,
        host: str,
        port: int = 993,
        use_ssl: bool = True,
        connect_timeout: float = 10.0,
        auth_timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.connect_timeout = connect_timeout
        self.auth_timeout = auth_timeout
        self._client: IMAPClient | None = None
        # snapshot token -> UID it was issued for
        self._snapshots: dict[str, int] = {}

    @classmethod
    def open(cls, account: AccountConfig) -> "IMAPSession":
        """Connect and log in with an account's IMAP settings."""
        account = require_account(account)
        session = cls(
            account.imap.host,
            account.imap.port,
            use_ssl=account.imap.ssl,
            connect_timeout=account.connect_timeout,
            auth_timeout=account.auth_timeout,
        )
        session.connect(account.user, account.password)
        return session

    def connect(self, user: str, password: str) -> None:
        timeout = SocketTimeout(connect=self.connect_timeout, read=self.auth_timeout)
        try:
            client = IMAPClient(self.host, port=self.port, ssl=self.use_ssl, timeout=timeout)
        except TRANSPORT_ERRORS as e:
            raise ConnectError(f"Could not connect to {self.host}:{self.port}: {e}") from e

        try:
            client.login(user, password)
        except TRANSPORT_ERRORS as e:
            try:
                client.shutdown()
            except TRANSPORT_ERRORS:
                pass
            raise ConnectError(f"Login to {self.host} as {user} failed: {e}") from e

        self.attach(client)
        logger.debug("Connected to %s:%s as %s", self.host, self.port, user)

    def attach(self, client: IMAPClient) -> None:
        """Use an already logged-in client."""
        # Keep server offsets on INTERNALDATE instead of converting to naive local time
        client.normalise_times = False
        self._client = client

    def disconnect(self) -> None:
        if self._client:
            try:
                self._client.logout()
            except TRANSPORT_ERRORS:
                pass
            self._client = None
        self._snapshots.clear()

    @property
    def client(self) -> IMAPClient:
        if not self._client:
            raise RuntimeError("Not connected")
        return self._client

    def has_capability(self, name: str) -> bool:
        try:
            return self.client.has_capability(name)
        except TRANSPORT_ERRORS:
            return False

    def select_folder(self, folder: str, readonly: bool = True) -> int:
        """Select a folder, return message count."""
        try:
            info = self.client.select_folder(folder, readonly=readonly)
        except TRANSPORT_ERRORS as e:
            raise SearchError(f"Failed to select folder {folder}: {e}") from e
        return int(info.get(b"EXISTS", 0))

    def search_subject(self, *terms: str | None) -> list[int]:
        """UID SEARCH for messages whose subject contains every term.

        Returns UIDs in ascending order. Non-ASCII terms switch the search
        to ``CHARSET UTF-8``; imapclient sends them as literals.
        """
        terms = [t for t in terms if t]
        criteria: list[str] = []
        for term in terms:
            criteria += ["SUBJECT", term]
        charset = None if all(t.isascii() for t in terms) else "UTF-8"
        try:
            uids = self.client.search(criteria or ["ALL"], charset=charset)
        except TRANSPORT_ERRORS as e:
            raise SearchError(f"Search failed: {e}") from e
        return sorted(uids)

    def _fetch(self, uids: list[int], items: list[str]) -> dict[int, dict]:
        try:
            return self.client.fetch(uids, items)
        except TRANSPORT_ERRORS as e:
            raise FetchError(f"FETCH {' '.join(items)} for {len(uids)} message(s) failed: {e}") from e

    def _issue_snapshot(self, uid: int) -> str:
        """New snapshot for ``uid``; locators from older structure fetches stop working."""
        self._snapshots = {s: u for s, u in self._snapshots.items() if u != uid}
        snapshot = uuid.uuid4().hex
        self._snapshots[snapshot] = uid
        return snapshot

    def _to_response(self, uid: int, attrs: dict) -> FetchResponse:
        response = FetchResponse(uid=uid)

        found, header = find_section(attrs, "BODY[HEADER")
        if found:
            response.header = header or b""

        if b"BODYSTRUCTURE" in attrs:
            response.has_structure = True
            snapshot = self._issue_snapshot(uid)
            try:
                response.structure = build_tree(attrs[b"BODYSTRUCTURE"], snapshot)
            except StructureError as e:
                logger.debug("UID %s: unreadable body structure: %s", uid, e)
                response.structure_error = e

        internaldate = attrs.get(b"INTERNALDATE")
        if isinstance(internaldate, datetime):
            response.internaldate = internaldate
        return response

    def fetch_summaries(self, uids: list[int]) -> list[FetchResponse]:
        """Header + structure fetch in batches of FETCH_BATCH, in arrival order."""
        responses = []
        for batch in batches(uids):
            wanted = set(batch)
            for uid, attrs in self._fetch(batch, SUMMARY_ITEMS).items():
                # Unsolicited responses for other messages can share the reply
                if uid in wanted:
                    responses.append(self._to_response(uid, attrs))
        return responses

    def fetch_headers(self, uids: list[int], fields: str) -> dict[int, bytes]:
        """Fetch the named header fields for each message."""
        headers = {}
        for batch in batches(uids):
            wanted = set(batch)
            fetched = self._fetch(batch, [f"BODY.PEEK[HEADER.FIELDS ({fields})]"])
            for uid, attrs in fetched.items():
                found, header = find_section(attrs, "BODY[HEADER")
                if found and uid in wanted:
                    headers[uid] = header or b""
        return headers

    def fetch_structure(self, uid: int) -> FetchResponse:
        """Structure-only fetch for one message.

        Raises StructureError if the server's BODYSTRUCTURE can't be read.
        """
        attrs = self._fetch([uid], STRUCTURE_ITEMS).get(uid)
        if not attrs or b"BODYSTRUCTURE" not in attrs:
            raise NotFoundError(f"No message with id {uid}")
        response = self._to_response(uid, attrs)
        if response.structure_error:
            raise response.structure_error
        return response

    def fetch_part(self, uid: int, locator: PartLocator) -> bytes:
        """Fetch one body part's raw (still transfer-encoded) bytes."""
        if self._snapshots.get(locator.snapshot) != uid:
            raise StructureError(
                f"Part locator {locator.section} was not issued for message {uid} by this session"
            )

        section = locator.section
        attrs = self._fetch([uid], [f"BODY.PEEK[{section}]"]).get(uid, {})
        found, value = find_section(attrs, f"BODY[{section}]")
        if not found:
            raise FetchError(f"Part {section} of message {uid} missing from FETCH response")
        if value is None:
            raise FetchError(f"Server returned no data for part {section} of message {uid}")
        data = value if isinstance(value, bytes) else str(value).encode()
        logger.debug("UID %s part %s: %d bytes", uid, section, len(data))
        return data

    def add_flags(self, uid: int, flags: list) -> bool:
        """Add flags to a message. Returns whether the server echoed the message back."""
        try:
            result = self.client.add_flags([uid], flags)
        except TRANSPORT_ERRORS as e:
            raise UpdateError(f"Failed to flag message {uid}: {e}") from e
        return uid in result

    def expunge(self, uid: int | None = None) -> None:
        """Expunge deleted messages; only ``uid`` when the server supports UIDPLUS."""
        try:
            if uid is not None and self.has_capability("UIDPLUS"):
                self.client.expunge([uid])
            else:
                self.client.expunge()
        except TRANSPORT_ERRORS as e:
            raise UpdateError(f"Expunge failed: {e}") from e

    def append(self, folder: str, raw_message: bytes, date: datetime | None = None) -> int | None:
        """Append a message to a folder. Returns its UID when the server reports APPENDUID."""
        try:
            response = self.client.append(folder, raw_message, msg_time=date)
        except TRANSPORT_ERRORS as e:
            raise UpdateError(f"Append to {folder} failed: {e}") from e
        m = APPENDUID.search(response or b"")
        return int(m.group(1)) if m else None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.disconnect()


def check_imap(account: AccountConfig) -> None:
    """Open a session and select the store mailbox. Raises on failure."""
    with IMAPSession.open(account) as session:
        session.select_folder(account.mailbox, readonly=True)
