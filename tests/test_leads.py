from src.agency_crm import models
from src.agency_crm.utils import plan_helpers

NEW_LEAD = {
    "first_name": "Ann",
    "last_name": "Lee",
    "email": "Ann.Lee@Example.com",
    "phone": " 555-0100 ",
}


def create_lead(client, headers, **overrides):
    return client.post("/leads", json={**NEW_LEAD, **overrides}, headers=headers)


def test_create_lead(client, db, make_agency, auth):
    agency_id, owner_id = make_agency()
    headers = auth(owner_id)

    response = create_lead(client, headers)

    assert response.status_code == 201, response.text
    lead = response.json()
    assert lead["agency_id"] == agency_id
    assert lead["full_name"] == "Ann Lee"
    assert lead["email"] == "ann.lee@example.com"
    assert lead["phone"] == "555-0100"
    assert lead["source"] == "website"
    assert lead["status"] == "new"
    assert lead["import_job_id"] is None

    assert client.get("/leads", headers=headers).json()["total"] == 1
    audit = db.query(models.AuditLog).filter(models.AuditLog.entity == "lead").one()
    assert audit.diff["email"].endswith("***")


def test_create_lead_validates_email_and_campaign(client, make_agency, auth):
    _, owner_id = make_agency()
    _, other_owner = make_agency()
    headers = auth(owner_id)
    foreign_campaign = client.post(
        "/campaigns", json={"name": "Theirs"}, headers=auth(other_owner)
    ).json()["id"]

    assert create_lead(client, headers, email="not-an-email").status_code == 422

    response = create_lead(client, headers, campaign_id=foreign_campaign)
    assert response.status_code == 404
    assert client.get("/leads", headers=headers).json()["total"] == 0


def test_lead_can_join_a_campaign(client, make_agency, auth):
    _, owner_id = make_agency()
    headers = auth(owner_id)
    campaign_id = client.post(
        "/campaigns", json={"name": "Referrals", "campaign_type": "referral"}, headers=headers
    ).json()["id"]

    lead = create_lead(client, headers, campaign_id=campaign_id, source="referral").json()

    assert lead["campaign_id"] == campaign_id
    listed = client.get(f"/leads?campaign_id={campaign_id}", headers=headers).json()
    assert listed["total"] == 1


def test_move_lead_through_pipeline(client, db, make_agency, auth):
    _, owner_id = make_agency()
    headers = auth(owner_id)
    lead_id = create_lead(client, headers).json()["id"]

    for stage in ("contacted", "booked", "won"):
        response = client.patch(f"/leads/{lead_id}", json={"status": stage}, headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == stage

    assert client.get("/leads?status=won", headers=headers).json()["total"] == 1
    changes = (
        db.query(models.AuditLog).filter(models.AuditLog.action == "status_changed").all()
    )
    assert len(changes) == 3


def test_status_update_rejects_unknown_stage_and_other_agencies(client, make_agency, auth):
    _, owner_id = make_agency()
    _, other_owner = make_agency()
    lead_id = create_lead(client, auth(owner_id)).json()["id"]

    response = client.patch(f"/leads/{lead_id}", json={"status": "maybe"}, headers=auth(owner_id))
    assert response.status_code == 400

    response = client.patch(
        f"/leads/{lead_id}", json={"status": "lost"}, headers=auth(other_owner)
    )
    assert response.status_code == 404


def test_monthly_lead_limit_blocks_new_leads(client, make_agency, auth, monkeypatch):
    monkeypatch.setitem(plan_helpers.LEAD_LIMITS, "free", 2)
    _, owner_id = make_agency()
    headers = auth(owner_id)

    assert create_lead(client, headers, email="a@example.com").status_code == 201
    assert create_lead(client, headers, email="b@example.com").status_code == 201

    response = create_lead(client, headers, email="c@example.com")
    assert response.status_code == 403
    assert response.json()["detail"].startswith("Monthly lead limit reached (2 leads on the free plan)")
    assert client.get("/leads", headers=headers).json()["total"] == 2


def test_paid_plan_has_a_larger_allowance(client, make_agency, auth, monkeypatch):
    monkeypatch.setitem(plan_helpers.LEAD_LIMITS, "free", 0)
    _, owner_id = make_agency(plan="starter", seats=5)

    assert create_lead(client, auth(owner_id)).status_code == 201
