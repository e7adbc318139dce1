import os

# Must be set before the app modules read their configuration.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ.pop("JWT_ACCESS_TOKEN_EXPIRE_HOURS", None)

from datetime import datetime, timedelta

import pytest

fastapi = pytest.importorskip("fastapi")
TestClient = pytest.importorskip("fastapi.testclient").TestClient

from src.agency_crm import models  # noqa: E402
from src.agency_crm.core.database import SessionLocal, engine  # noqa: E402
from src.agency_crm.core.jwt import create_access_token  # noqa: E402
from src.agency_crm.main import app  # noqa: E402


@pytest.fixture
def tables():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    yield
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(tables):
    return TestClient(app)


@pytest.fixture
def db(tables):
    """A session for seeding and assertions. Commit before calling the API."""
    session = SessionLocal()
    yield session
    session.close()


def auth_headers(profile_id):
    return {"Authorization": f"Bearer {create_access_token({'sub': profile_id})}"}


@pytest.fixture
def make_agency(db):
    """Create an agency with its owner; returns (agency_id, owner_id)."""
    counter = {"n": 0}

    def _make(seats=1, plan="free", name="Acme Insurance"):
        counter["n"] += 1
        owner = models.Profile(
            email=f"owner{counter['n']}@example.com", full_name="Agency Owner"
        )
        db.add(owner)
        db.flush()
        agency = models.Agency(
            name=name, owner_user_id=owner.id, plan=plan, seats=seats
        )
        db.add(agency)
        db.flush()
        owner.agency_id = agency.id
        db.add(
            models.AgencyMember(agency_id=agency.id, user_id=owner.id, role="owner")
        )
        agency_id, owner_id = agency.id, owner.id
        db.commit()
        return agency_id, owner_id

    return _make


@pytest.fixture
def add_member(db):
    """Add a member with `role` to an agency; returns the profile id."""

    def _add(agency_id, email, role="agent"):
        profile = models.Profile(email=email, agency_id=agency_id)
        db.add(profile)
        db.flush()
        db.add(models.AgencyMember(agency_id=agency_id, user_id=profile.id, role=role))
        profile_id = profile.id
        db.commit()
        return profile_id

    return _add


@pytest.fixture
def add_invitation(db):
    def _add(agency_id, email, expires_in=timedelta(days=7), accepted=False):
        now = datetime.utcnow()
        invitation = models.UserInvitation(
            agency_id=agency_id,
            email=email,
            role="agent",
            token=f"token-{email}",
            expires_at=now + expires_in,
            accepted_at=now if accepted else None,
        )
        db.add(invitation)
        db.flush()
        invitation_id = invitation.id
        db.commit()
        return invitation_id

    return _add


@pytest.fixture
def auth():
    return auth_headers
