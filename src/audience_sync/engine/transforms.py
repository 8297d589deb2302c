"""
Field transformation utilities for mapping Mailchimp members to Ometria contacts.
"""

import logging
from typing import List, Tuple

from ..core.models import Member, OmetriaContact

logger = logging.getLogger(__name__)


def derive_names(member: Member) -> Tuple[str, str]:
    """
    Work out a member's first and last name.

    The merge fields win when they are filled in. A blank first name falls
    back to the first word of ``full_name``; a blank last name falls back to
    the last word, but only when ``full_name`` has more than one word.

    Args:
        member: Member as returned by Mailchimp

    Returns:
        (first name, last name)
    """
    first_name = member.merge_fields.first_name
    last_name = member.merge_fields.last_name
    parts = member.full_name.split()

    if not first_name.strip() and parts:
        first_name = parts[0]

    if not last_name.strip() and len(parts) > 1:
        last_name = parts[-1]

    return first_name, last_name


def transform_member(member: Member) -> OmetriaContact:
    """Map a single Mailchimp member to an Ometria contact."""
    first_name, last_name = derive_names(member)
    return OmetriaContact(
        id=member.id,
        firstname=first_name,
        lastname=last_name,
        email=member.email_address,
        status=member.status,
    )


def transform_members(members: List[Member]) -> List[OmetriaContact]:
    """Map a page of members, right before it is pushed."""
    return [transform_member(member) for member in members]
