"""Message structure tree and conversion from IMAP BODYSTRUCTURE.

The tree is a tagged variant: a ``Container`` holds ordered children, a
``Leaf`` describes one body part. Each leaf carries the ``PartLocator`` the
session assigned while reading one particular structure fetch; nothing
downstream may build or alter a locator.
"""

from dataclasses import dataclass, field
from email.header import decode_header, make_header
from email.utils import collapse_rfc2231_value, decode_params, unquote
from typing import Any, Union

from .errors import StructureError


@dataclass(frozen=True)
class PartLocator:
    """Opaque handle for one body part, bound to the structure fetch that produced it."""
    section: str
    snapshot: str


@dataclass
class Leaf:
    type: str
    subtype: str
    params: dict[str, str] = field(default_factory=dict)
    encoding: str | None = None
    size: int = 0
    disposition: str | None = None
    disposition_params: dict[str, str] = field(default_factory=dict)
    locator: PartLocator | None = None


@dataclass
class Container:
    subtype: str
    children: list["Node"] = field(default_factory=list)


Node = Union[Container, Leaf]


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (str, int)):
        return str(value)
    raise StructureError(f"Expected a string in body structure, got {value!r}")


def _decode_words(value: str) -> str:
    """Decode RFC 2047 encoded words, leaving the value alone if it can't be decoded."""
    if "=?" not in value:
        return value
    try:
        return str(make_header(decode_header(value)))
    except (LookupError, UnicodeDecodeError, ValueError):
        return value


def parse_params(value: Any) -> dict[str, str]:
    """Body or disposition parameter list -> dict with lowercase keys.

    RFC 2231 continuations and charsets (``filename*0*=utf-8''...``) are
    collapsed into one value; RFC 2047 encoded words are decoded.
    """
    if not isinstance(value, (list, tuple)):
        return {}
    pairs = []
    for key, val in zip(value[::2], value[1::2]):
        key, val = _text(key), _text(val)
        if key is not None and val is not None:
            pairs.append((key.lower(), val))
    try:
        # decode_params skips its first pair (the content type itself)
        decoded = decode_params([("", "")] + pairs)[1:]
    except (TypeError, ValueError) as e:
        raise StructureError(f"Malformed parameters {value!r}: {e}") from e

    params = {}
    for name, val in decoded:
        if isinstance(val, tuple):
            charset, language, text = val
            val = (charset or "utf-8", language, unquote(text))
        params[name] = _decode_words(collapse_rfc2231_value(val))
    return params


def _disposition(value: Any) -> tuple[str | None, dict[str, str]]:
    if not isinstance(value, (list, tuple)) or not value:
        return None, {}
    kind = _text(value[0])
    params = parse_params(value[1]) if len(value) > 1 else {}
    return (kind.lower() if kind else None), params


def _size(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = _text(value)
    return int(text) if text and text.isdecimal() else 0


def _leaf(body: tuple, snapshot: str, section: str) -> Leaf:
    if len(body) < 7:
        raise StructureError(f"Body part {section} has too few fields: {body!r}")
    maintype = (_text(body[0]) or "application").lower()
    subtype = (_text(body[1]) or "octet-stream").lower()

    # Extension data (md5, disposition, ...) follows the type-specific fields
    extension = body[7:]
    if maintype == "text":
        extension = extension[1:]
    elif maintype == "message" and subtype in ("rfc822", "global"):
        extension = extension[3:]
    disposition, disposition_params = _disposition(extension[1] if len(extension) > 1 else None)

    return Leaf(
        type=maintype,
        subtype=subtype,
        params=parse_params(body[2]),
        encoding=_text(body[5]),
        size=_size(body[6]),
        disposition=disposition,
        disposition_params=disposition_params,
        locator=PartLocator(section=section, snapshot=snapshot),
    )


def _build(body: Any, snapshot: str, section: str) -> Node:
    if not isinstance(body, (list, tuple)) or not body:
        raise StructureError(f"Malformed body structure at {section or 'top'}: {body!r}")

    # imapclient's BodyData gathers a multipart's parts into a list at index 0
    if not isinstance(body[0], list):
        return _leaf(body, snapshot, section or "1")

    children = [
        _build(part, snapshot, f"{section}.{i}" if section else str(i))
        for i, part in enumerate(body[0], 1)
    ]
    subtype = _text(body[1]) if len(body) > 1 else None
    return Container(subtype=(subtype or "mixed").lower(), children=children)


def build_tree(bodystructure: Any, snapshot: str) -> Node:
    """Convert imapclient's BodyData into a structure tree.

    Sections follow RFC 3501 part numbering; they are wrapped in locators
    tagged with ``snapshot`` so they can't be confused with another fetch.
    """
    return _build(bodystructure, snapshot, "")
