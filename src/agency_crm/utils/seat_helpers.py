"""
Helper functions for seat limit arithmetic.

Shared by the API (invitations, seat usage, invite cap check) and by the
client helper, so both sides always agree on whether an agency can invite
more members.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SeatUsage:
    total_seats: int
    active_members: int
    pending_invitations: int
    available_seats: int
    can_invite_more: bool

    @property
    def used(self) -> int:
        return self.active_members + self.pending_invitations

    def can_invite(self, requested: int = 1) -> bool:
        """Bulk check: enough free seats for `requested` new invitations."""
        if requested <= 0:
            return True
        return self.available_seats >= requested

    def usage_details(self, requested: int = 1) -> str:
        return (
            f"{self.used}/{self.total_seats} seats used "
            f"({self.active_members} active + {self.pending_invitations} pending), "
            f"{self.available_seats} available, requesting {requested}"
        )

    def as_dict(self) -> dict:
        return {
            "total_seats": self.total_seats,
            "active_members": self.active_members,
            "pending_invitations": self.pending_invitations,
            "available_seats": self.available_seats,
            "can_invite_more": self.can_invite_more,
        }


def calculate_seat_usage(
    total_seats: int, active_members: int, pending_invitations: int
) -> SeatUsage:
    """
    Compute seat availability for an agency.

    Args:
        total_seats: Seats included in the agency's plan
        active_members: Current agency members (owner included)
        pending_invitations: Invitations not yet accepted and not expired

    Returns:
        SeatUsage with available = max(0, total - active - pending)
    """
    total_seats = total_seats or 0
    active_members = active_members or 0
    pending_invitations = pending_invitations or 0

    available = max(0, total_seats - active_members - pending_invitations)
    return SeatUsage(
        total_seats=total_seats,
        active_members=active_members,
        pending_invitations=pending_invitations,
        available_seats=available,
        can_invite_more=available > 0,
    )


def invite_cap(total_seats: Optional[int], active_members: int, pending: int) -> dict:
    """Invite cap check: an agency always has at least one seat."""
    cap = max(total_seats or 1, 1)
    used = (active_members or 0) + (pending or 0)
    return {"allowed": used < cap, "used": used, "cap": cap}
