import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from src.agency_crm.core.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Agency(Base):
    __tablename__ = "agencies"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    owner_user_id = Column(String(36), nullable=False, index=True)
    plan = Column(String(50), default="free", nullable=False)  # free, starter, ...
    seats = Column(Integer, default=1, nullable=False)  # Total seats purchased
    stripe_customer_id = Column(String(255), nullable=True, unique=True, index=True)
    stripe_subscription_id = Column(
        String(255), nullable=True, unique=True, index=True
    )
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())


class Profile(Base):
    __tablename__ = "profiles"

    # `id` is the identity provider's subject (JWT `sub`)
    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    agency_id = Column(
        String(36),
        ForeignKey("agencies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime, server_default=func.now())


class AgencyMember(Base):
    __tablename__ = "agency_members"

    id = Column(String(36), primary_key=True, default=new_id)
    agency_id = Column(
        String(36),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String(20), default="agent", nullable=False)  # owner, admin, ...
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (UniqueConstraint("agency_id", "user_id"),)


class UserInvitation(Base):
    __tablename__ = "user_invitations"

    id = Column(String(36), primary_key=True, default=new_id)
    agency_id = Column(
        String(36),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    invited_by = Column(
        String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    token = Column(String(255), unique=True, nullable=False, index=True)
    # Pending = accepted_at IS NULL AND expires_at > now
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=new_id)
    actor_id = Column(String(36), nullable=False, index=True)
    agency_id = Column(String(36), nullable=False, index=True)
    entity = Column(String(100), nullable=False)
    action = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=True)
    diff = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
