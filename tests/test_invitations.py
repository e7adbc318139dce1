from datetime import timedelta

from src.agency_crm import models


def invite(client, headers, emails, role="agent"):
    return client.post("/invitations", json={"emails": emails, "role": role}, headers=headers)


def test_single_seat_agency_cannot_invite(client, make_agency, auth):
    _, owner_id = make_agency(seats=1)

    response = invite(client, auth(owner_id), ["new@example.com"])

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail.startswith("Seat limit exceeded. 1/1 seats used (1 active + 0 pending)")
    assert "Increase seats in Billing" in detail


def test_invites_until_seats_run_out(client, db, make_agency, auth):
    agency_id, owner_id = make_agency(seats=3)
    headers = auth(owner_id)

    response = invite(client, headers, ["a@example.com", "B@example.com"])
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["created"] == 2
    assert body["details"]["created_invitations"] == ["a@example.com", "b@example.com"]

    seats = client.get("/agencies/me/seats", headers=headers).json()
    assert seats == {
        "total_seats": 3,
        "active_members": 1,
        "pending_invitations": 2,
        "available_seats": 0,
        "can_invite_more": False,
    }

    assert invite(client, headers, ["c@example.com"]).status_code == 400

    audit = db.query(models.AuditLog).filter(models.AuditLog.agency_id == agency_id).all()
    assert len(audit) == 2
    assert all(entry.action == "created" for entry in audit)
    assert all(entry.diff["email"].endswith("***") for entry in audit)


def test_bulk_invite_must_fit_entirely(client, make_agency, auth):
    _, owner_id = make_agency(seats=2)

    response = invite(client, auth(owner_id), ["a@example.com", "b@example.com"])

    assert response.status_code == 400
    assert "requesting 2" in response.json()["detail"]
    assert client.get("/invitations", headers=auth(owner_id)).json() == []


def test_already_invited_and_existing_users_are_skipped(
    client, make_agency, add_member, add_invitation, auth
):
    agency_id, owner_id = make_agency(seats=5)
    add_member(agency_id, "member@example.com")
    add_invitation(agency_id, "pending@example.com")
    headers = auth(owner_id)

    response = invite(client, headers, ["member@example.com", "pending@example.com"])
    assert response.status_code == 400
    assert response.json()["details"] == {
        "already_invited": ["pending@example.com"],
        "existing_users": ["member@example.com"],
    }

    response = invite(
        client, headers, ["member@example.com", "pending@example.com", "new@example.com"]
    )
    assert response.status_code == 200
    assert response.json()["created"] == 1
    assert response.json()["skipped"] == 2


def test_expired_and_accepted_invitations_free_their_seat(
    client, make_agency, add_invitation, auth
):
    agency_id, owner_id = make_agency(seats=2)
    add_invitation(agency_id, "old@example.com", expires_in=timedelta(days=-1))
    add_invitation(agency_id, "done@example.com", accepted=True)

    response = invite(client, auth(owner_id), ["new@example.com"])

    assert response.status_code == 200


def test_only_owners_and_admins_can_invite(client, make_agency, add_member, auth):
    agency_id, _ = make_agency(seats=5)
    agent_id = add_member(agency_id, "agent@example.com", role="agent")
    admin_id = add_member(agency_id, "admin@example.com", role="admin")

    response = invite(client, auth(agent_id), ["x@example.com"])
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions to invite users"

    assert invite(client, auth(admin_id), ["x@example.com"]).status_code == 200


def test_rejects_invalid_role_and_missing_emails(client, make_agency, auth):
    _, owner_id = make_agency(seats=5)
    headers = auth(owner_id)

    assert invite(client, headers, ["x@example.com"], role="owner").status_code == 400

    response = client.post("/invitations", json={"role": "agent"}, headers=headers)
    assert response.status_code == 422
    assert response.json()["error"] == "Validation Error"


def test_revoking_an_invitation_frees_the_seat(client, make_agency, auth):
    _, owner_id = make_agency(seats=2)
    headers = auth(owner_id)
    invite(client, headers, ["a@example.com"])
    invitation_id = client.get("/invitations", headers=headers).json()[0]["id"]

    assert invite(client, headers, ["b@example.com"]).status_code == 400

    response = client.delete(f"/invitations/{invitation_id}", headers=headers)
    assert response.status_code == 200
    assert client.delete(f"/invitations/{invitation_id}", headers=headers).status_code == 404

    assert invite(client, headers, ["b@example.com"]).status_code == 200


def test_existing_user_match_ignores_email_case(client, make_agency, add_member, auth):
    agency_id, owner_id = make_agency(seats=5)
    add_member(agency_id, "Bob@Example.com")

    response = invite(client, auth(owner_id), ["bob@example.com"])

    assert response.status_code == 400
    assert response.json()["details"] == {
        "already_invited": [],
        "existing_users": ["bob@example.com"],
    }
    assert client.get("/invitations", headers=auth(owner_id)).json() == []
