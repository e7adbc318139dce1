from types import SimpleNamespace

import pytest

stripe = pytest.importorskip("stripe")

from src.agency_crm import models
from src.agency_crm.api.endpoints import billing

CHECKOUT = {"price_id": "price_starter_monthly", "plan_id": "starter"}


class FakeStripe:
    """Records the calls the checkout route makes to Stripe."""

    def __init__(self, existing_customer=None):
        self.existing_customer = existing_customer
        self.created_customers = []
        self.sessions = []

    def list_customers(self, **kwargs):
        data = [SimpleNamespace(id=self.existing_customer)] if self.existing_customer else []
        return SimpleNamespace(data=data)

    def create_customer(self, **kwargs):
        self.created_customers.append(kwargs)
        return SimpleNamespace(id="cus_created")

    def create_session(self, **kwargs):
        self.sessions.append(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")


@pytest.fixture
def fake_stripe(monkeypatch):
    def _install(existing_customer=None):
        fake = FakeStripe(existing_customer)
        monkeypatch.setattr(billing, "STRIPE_SECRET_KEY", "sk_test_dummy")
        monkeypatch.setattr(billing.stripe.Customer, "list", fake.list_customers)
        monkeypatch.setattr(billing.stripe.Customer, "create", fake.create_customer)
        monkeypatch.setattr(billing.stripe.checkout.Session, "create", fake.create_session)
        return fake

    return _install


def load_agency(db, agency_id):
    db.expire_all()
    return db.query(models.Agency).filter(models.Agency.id == agency_id).one()


def test_creates_customer_and_stores_it_on_the_agency(
    client, db, make_agency, auth, fake_stripe
):
    agency_id, owner_id = make_agency()
    fake = fake_stripe()

    response = client.post("/billing/checkout", json=CHECKOUT, headers=auth(owner_id))

    assert response.status_code == 200, response.text
    assert response.json() == {"url": "https://checkout.stripe.test/cs_test_1"}
    assert len(fake.created_customers) == 1
    assert fake.created_customers[0]["metadata"] == {
        "user_id": owner_id,
        "agency_id": agency_id,
    }
    assert load_agency(db, agency_id).stripe_customer_id == "cus_created"


def test_reuses_existing_customer(client, db, make_agency, auth, fake_stripe):
    agency_id, owner_id = make_agency()
    fake = fake_stripe(existing_customer="cus_existing")

    response = client.post("/billing/checkout", json=CHECKOUT, headers=auth(owner_id))

    assert response.status_code == 200
    assert fake.created_customers == []
    assert fake.sessions[0]["customer"] == "cus_existing"
    assert load_agency(db, agency_id).stripe_customer_id == "cus_existing"


def test_session_carries_plan_and_agency_metadata(client, make_agency, auth, fake_stripe):
    agency_id, owner_id = make_agency()
    fake = fake_stripe()

    client.post(
        "/billing/checkout",
        json=CHECKOUT,
        headers={**auth(owner_id), "origin": "https://app.example.com"},
    )

    session = fake.sessions[0]
    assert session["mode"] == "subscription"
    assert session["line_items"] == [{"price": "price_starter_monthly", "quantity": 1}]
    assert session["metadata"] == {
        "plan_id": "starter",
        "agency_id": agency_id,
        "user_id": owner_id,
    }
    assert session["success_url"].startswith("https://app.example.com/billing?success=true")
    assert session["cancel_url"] == "https://app.example.com/billing?canceled=true"


def test_stripe_error_is_a_bad_request(client, make_agency, auth, fake_stripe, monkeypatch):
    _, owner_id = make_agency()
    fake_stripe()

    def fail(**kwargs):
        raise stripe.StripeError("No such price: 'price_starter_monthly'")

    monkeypatch.setattr(billing.stripe.checkout.Session, "create", fail)

    response = client.post("/billing/checkout", json=CHECKOUT, headers=auth(owner_id))

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Stripe error:")
    assert "No such price" in response.json()["detail"]


def test_missing_secret_key_is_a_server_error(client, make_agency, auth, fake_stripe, monkeypatch):
    _, owner_id = make_agency()
    fake = fake_stripe()
    monkeypatch.setattr(billing, "STRIPE_SECRET_KEY", None)

    response = client.post("/billing/checkout", json=CHECKOUT, headers=auth(owner_id))

    assert response.status_code == 500
    assert response.json()["detail"] == "Missing required environment variables"
    assert fake.sessions == []


def test_requires_authentication(client):
    assert client.post("/billing/checkout", json=CHECKOUT).status_code == 401
