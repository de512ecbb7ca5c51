"""Compose stored-file and ordinary messages and send them over SMTP."""

import logging
import mimetypes
import smtplib
from datetime import datetime
from email import encoders
from email.header import Header
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid

from .config import AccountConfig, require_account
from .errors import ConnectError, SendError


logger = logging.getLogger(__name__)


def object_subject(tag: str, name: str) -> str | Header:
    """Subject for a stored file. The tag stays plain ASCII so server-side SUBJECT search sees it."""
    if name.isascii():
        return f"{tag} {name}"
    subject = Header(tag, "us-ascii")
    subject.append(name, "utf-8")
    return subject


def _attachment_part(data: bytes, filename: str) -> MIMEBase:
    """base64 attachment part; non-ASCII names use an RFC 2231 ``filename*``."""
    content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    maintype, subtype = content_type.split("/", 1)
    attachment = MIMEBase(maintype, subtype)
    attachment.set_payload(data)
    encoders.encode_base64(attachment)
    if filename.isascii():
        attachment.add_header("Content-Disposition", "attachment", filename=filename)
    else:
        attachment.add_header("Content-Disposition", "attachment", filename=("utf-8", "", filename))
    return attachment


def _new_message(account: AccountConfig, to: str, subject) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = account.user
    msg["To"] = to
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=account.user.rpartition("@")[2] or None)
    return msg


def build_object_message(
    account: AccountConfig,
    data: bytes,
    filename: str,
    now: datetime | None = None,
) -> MIMEMultipart:
    """One message, addressed to the account itself, with ``data`` attached as ``filename``."""
    now = now or datetime.now()
    msg = _new_message(account, account.user, object_subject(account.tag, filename))
    note = f"Stored file: {filename}\nSize: {len(data)} bytes\nUploaded: {now:%Y-%m-%d %H:%M:%S}\n"
    msg.attach(MIMEText(note, "plain", "utf-8"))
    msg.attach(_attachment_part(data, filename))
    return msg


def build_mail(
    account: AccountConfig,
    to: str,
    subject: str,
    body: str = "",
    attachments=(),
) -> MIMEMultipart:
    """An ordinary message from the account to ``to``, with optional ``(filename, data)`` attachments."""
    msg = _new_message(account, to, subject if subject.isascii() else Header(subject, "utf-8"))
    msg.attach(MIMEText(body, "plain", "utf-8"))
    for filename, data in attachments:
        msg.attach(_attachment_part(data, filename))
    return msg


def _quit(client: smtplib.SMTP) -> None:
    try:
        client.quit()
    except (smtplib.SMTPException, OSError):
        client.close()


def _open_smtp(account: AccountConfig) -> smtplib.SMTP:
    """Connected, logged-in SMTP client. Closes the socket again if any step fails."""
    server = account.smtp
    client = None
    try:
        if server.ssl:
            client = smtplib.SMTP_SSL(server.host, server.port, timeout=account.connect_timeout)
        else:
            client = smtplib.SMTP(server.host, server.port, timeout=account.connect_timeout)
            client.starttls()
        client.login(account.user, account.password)
    except (smtplib.SMTPException, OSError) as e:
        if client is not None:
            client.close()
        raise ConnectError(f"SMTP connection to {server.host}:{server.port} failed: {e}") from e
    return client


def send_message(account: AccountConfig, msg: MIMEMultipart) -> None:
    """Send a composed message with the account's SMTP server."""
    account = require_account(account, smtp=True)
    client = _open_smtp(account)
    try:
        client.send_message(msg)
        logger.debug("Sent %r via %s", msg["Subject"], account.smtp.host)
    except (smtplib.SMTPException, OSError) as e:
        raise SendError(f"Sending failed: {e}") from e
    finally:
        _quit(client)


def check_smtp(account: AccountConfig) -> None:
    """Connect and log in to SMTP. Raises ConnectError on failure."""
    account = require_account(account, smtp=True)
    client = _open_smtp(account)
    try:
        code, reply = client.noop()
    except (smtplib.SMTPException, OSError) as e:
        raise ConnectError(f"SMTP server {account.smtp.host} stopped responding: {e}") from e
    finally:
        _quit(client)
    if code != 250:
        raise ConnectError(f"SMTP server {account.smtp.host} answered NOOP with {code}: {reply!r}")
