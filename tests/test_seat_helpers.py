import pytest

from src.agency_crm.utils.seat_helpers import calculate_seat_usage, invite_cap


@pytest.mark.parametrize(
    "total,active,pending,available,can_invite_more",
    [
        (5, 4, 1, 0, False),
        (5, 3, 1, 1, True),
        (3, 4, 1, 0, False),
        (1, 1, 0, 0, False),
        (15, 2, 0, 13, True),
    ],
)
def test_available_seats(total, active, pending, available, can_invite_more):
    usage = calculate_seat_usage(total, active, pending)

    assert usage.available_seats == available
    assert usage.can_invite_more is can_invite_more
    assert usage.available_seats == max(0, total - active - pending)


def test_bulk_invite_needs_a_seat_per_invitation():
    usage = calculate_seat_usage(5, 3, 1)

    assert usage.can_invite(1) is True
    assert usage.can_invite(2) is False
    assert usage.can_invite(0) is True


def test_usage_details_message():
    usage = calculate_seat_usage(5, 3, 1)

    assert usage.used == 4
    assert usage.usage_details(2) == (
        "4/5 seats used (3 active + 1 pending), 1 available, requesting 2"
    )


def test_missing_counts_are_treated_as_zero():
    usage = calculate_seat_usage(None, None, None)

    assert usage.total_seats == 0
    assert usage.available_seats == 0
    assert usage.can_invite_more is False


def test_as_dict_matches_fields():
    assert calculate_seat_usage(5, 3, 1).as_dict() == {
        "total_seats": 5,
        "active_members": 3,
        "pending_invitations": 1,
        "available_seats": 1,
        "can_invite_more": True,
    }


@pytest.mark.parametrize(
    "seats,active,pending,expected",
    [
        (1, 1, 0, {"allowed": False, "used": 1, "cap": 1}),
        (5, 3, 1, {"allowed": True, "used": 4, "cap": 5}),
        (5, 4, 1, {"allowed": False, "used": 5, "cap": 5}),
        (0, 0, 0, {"allowed": True, "used": 0, "cap": 1}),
        (None, 1, 0, {"allowed": False, "used": 1, "cap": 1}),
    ],
)
def test_invite_cap(seats, active, pending, expected):
    assert invite_cap(seats, active, pending) == expected
