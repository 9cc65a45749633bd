"""Ranked role table used by every authorization check."""

from typing import Optional

from labbook.domain.types import Actor, Role

ROLE_RANKS = {
    Role.STUDENT: 1,
    Role.FACULTY: 2,
    Role.ADMIN: 3,
}

APPROVER_ROLE = Role.FACULTY


def role_rank(role: Role) -> int:
    return ROLE_RANKS[Role(role)]


def has_role(actor: Optional[Actor], required: Role) -> bool:
    """True when the actor's rank is at least the required rank."""
    if actor is None:
        return False
    return role_rank(actor.role) >= role_rank(required)


def is_approver(actor: Optional[Actor]) -> bool:
    return has_role(actor, APPROVER_ROLE)
