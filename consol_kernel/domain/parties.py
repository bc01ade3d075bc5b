"""
Responsible parties (``consol_kernel.domain.parties``).

A reviewer on a duplicate-alert transition is either an internal user or an
external contact (an outside accountant, say).  ``ResponsibleParty`` is the
closed union of the two; callers dispatch on it with an exhaustive ``match``.
"""

from dataclasses import dataclass
from typing import assert_never


@dataclass(frozen=True)
class InternalUser:
    user_id: str
    display_name: str


@dataclass(frozen=True)
class ExternalContact:
    contact_id: str
    display_name: str
    company: str | None = None


ResponsibleParty = InternalUser | ExternalContact


def describe_party(party: ResponsibleParty) -> str:
    """Human-readable label for audit logs."""
    match party:
        case InternalUser(display_name=name):
            return name
        case ExternalContact(display_name=name, company=None):
            return f"{name} (external)"
        case ExternalContact(display_name=name, company=company):
            return f"{name} ({company})"
        case _:
            assert_never(party)


def party_reference(party: ResponsibleParty) -> str:
    """Stable ``kind:id`` reference used as the logged actor id."""
    match party:
        case InternalUser(user_id=uid):
            return f"user:{uid}"
        case ExternalContact(contact_id=cid):
            return f"contact:{cid}"
        case _:
            assert_never(party)
