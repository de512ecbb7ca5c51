"""Find attachment leaves in a message structure tree."""

from .errors import StructureError
from .models import AttachmentRef
from .structure import Container, Leaf


ATTACHMENT = "attachment"
UNKNOWN_NAME = "unknown"


def to_ref(leaf: Leaf) -> AttachmentRef:
    if leaf.locator is None:
        raise StructureError(f"Attachment {leaf.type}/{leaf.subtype} has no part locator")
    name = (
        leaf.disposition_params.get("filename")
        or leaf.params.get("name")
        or UNKNOWN_NAME
    )
    return AttachmentRef(
        name=name,
        media_type=f"{leaf.type}/{leaf.subtype}".lower(),
        size=leaf.size,
        transfer_encoding=leaf.encoding,
        part_locator=leaf.locator,
    )


def locate(node) -> list[AttachmentRef]:
    """Return attachment leaves in depth-first container order.

    Anything that isn't a structure tree yields no attachments.
    """
    refs: list[AttachmentRef] = []
    if not isinstance(node, (Container, Leaf)):
        return refs

    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Container):
            stack.extend(reversed(current.children))
        elif isinstance(current, Leaf) and current.disposition == ATTACHMENT:
            refs.append(to_ref(current))
    return refs
