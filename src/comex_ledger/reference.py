"""Process reference parsing and client resolution.

A process reference looks like ``0058.039.1209.25``: four digit groups of
4, 3, 4 and 2 digits separated by periods. The first group is the code of the
client that owns the process. Parsing here is pure and never raises; looking
the client up is a store round trip that returns ``None`` on a miss.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from comex_ledger.errors import NotFoundError
from comex_ledger.models import CLIENT_CODE_LENGTH, Client
from comex_ledger.store.query import EntityStore

logger = structlog.get_logger(__name__)

REFERENCE_PATTERN = re.compile(r"[0-9]{4}\.[0-9]{3}\.[0-9]{4}\.[0-9]{2}")
REFERENCE_TEMPLATE = "XXXX.XXX.XXXX.XX"

# Digit counts after which a period is inserted
_GROUP_BREAKS = (4, 7, 11)
_MAX_DIGITS = 13
_DIGITS = frozenset("0123456789")


def validate_reference(reference: Any) -> bool:
    """Return True iff ``reference`` is a complete, well-formed reference."""
    if not isinstance(reference, str):
        return False
    return REFERENCE_PATTERN.fullmatch(reference) is not None


def extract_client_code(reference: str) -> str:
    """Return the client code embedded in a reference (its first 4 characters)."""
    return reference[:CLIENT_CODE_LENGTH]


def format_reference(raw: str) -> str:
    """Turn whatever the user typed into the dotted reference layout.

    Non-digits are dropped and periods inserted after the 4th, 7th and 11th
    digit. Partial input is formatted as far as it goes; digits beyond the
    13th are discarded.
    """
    digits = "".join(ch for ch in raw if ch in _DIGITS)[:_MAX_DIGITS]
    groups = []
    start = 0
    for end in (*_GROUP_BREAKS, _MAX_DIGITS):
        if start >= len(digits):
            break
        groups.append(digits[start:end])
        start = end
    return ".".join(groups)


def format_reference_input(previous: str, raw: str, cursor: int) -> tuple[str, int]:
    """Format a reference field after an edit and keep the cursor in place.

    ``previous`` is the field value before the edit, ``raw`` the value right
    after it and ``cursor`` the caret position in ``raw``. Returns the
    formatted value and the caret position adjusted for inserted or removed
    periods.
    """
    formatted = format_reference(raw)
    previous_dots = previous[:cursor].count(".")
    new_dots = formatted[:cursor].count(".")
    position = cursor + (new_dots - previous_dots)

    # A caret sitting right before a period moves past it
    if 0 <= position < len(formatted) and formatted[position] == ".":
        position += 1

    return formatted, max(0, min(position, len(formatted)))


async def find_client_by_reference(store: EntityStore, reference: str) -> Client | None:
    """Return the client whose code opens ``reference``, or None.

    Malformed references are a miss as well; they never reach the store.
    """
    if not validate_reference(reference):
        return None

    code = extract_client_code(reference)
    try:
        row = await store.table("clients").select("*").eq("code", code).single().execute()
    except NotFoundError:
        logger.info("reference_client_not_found", reference=reference, code=code)
        return None
    return Client.from_row(row)


class ReferenceState(str, Enum):
    MALFORMED = "malformed"
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"


@dataclass
class ReferenceLookup:
    """Outcome of checking a reference typed into the process form."""

    reference: str
    state: ReferenceState
    code: str | None = None
    client: Client | None = None

    @property
    def offer_client_creation(self) -> bool:
        """Well-formed reference whose client code is not registered yet."""
        return self.state == ReferenceState.UNRESOLVED


async def classify_reference(store: EntityStore, reference: str) -> ReferenceLookup:
    """Tell a malformed reference apart from a well-formed but unknown one."""
    if not validate_reference(reference):
        return ReferenceLookup(reference=reference, state=ReferenceState.MALFORMED)

    code = extract_client_code(reference)
    client = await find_client_by_reference(store, reference)
    if client is None:
        return ReferenceLookup(reference=reference, state=ReferenceState.UNRESOLVED, code=code)
    return ReferenceLookup(
        reference=reference, state=ReferenceState.RESOLVED, code=code, client=client
    )
