from datetime import datetime

import pytest

from src.agency_crm.utils.plan_helpers import (
    lead_limit_for_plan,
    month_start,
    remaining_leads,
)


@pytest.mark.parametrize(
    "plan,limit",
    [
        ("free", 50),
        ("starter", 500),
        ("professional", 2000),
        ("enterprise", 999999),
        ("legacy", 50),
        (None, 50),
    ],
)
def test_lead_limit_for_plan(plan, limit):
    assert lead_limit_for_plan(plan) == limit


def test_remaining_leads_never_negative():
    assert remaining_leads("free", 10) == 40
    assert remaining_leads("free", 50) == 0
    assert remaining_leads("free", 75) == 0
    assert remaining_leads("starter", 0) == 500


def test_month_start():
    assert month_start(datetime(2025, 3, 17, 14, 5, 9, 123)) == datetime(2025, 3, 1)
