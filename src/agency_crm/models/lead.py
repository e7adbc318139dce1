from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from src.agency_crm.core.database import Base
from src.agency_crm.models.agency import new_id
from src.agency_crm.utils.import_helpers import IMPORT_PENDING


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True, default=new_id)
    agency_id = Column(
        String(36),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # facebook_ads, google_ads, linkedin, referral, website, email, other
    campaign_type = Column(String(30), default="other", nullable=False)
    status = Column(String(20), default="active")  # draft, active, paused, completed
    budget = Column(Float, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=new_id)
    agency_id = Column(
        String(36),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    campaign_id = Column(
        String(36),
        ForeignKey("campaigns.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    full_name = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    source = Column(String(100), default="CSV")
    status = Column(String(50), default="new", index=True)
    notes = Column(Text, nullable=True)
    # Set for leads created by a CSV import
    import_job_id = Column(
        String(36),
        ForeignKey("import_jobs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=new_id)
    agency_id = Column(
        String(36),
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by = Column(String(36), nullable=True)
    filename = Column(String(255), nullable=False)
    status = Column(String(30), default=IMPORT_PENDING, nullable=False, index=True)
    total_rows = Column(Integer, default=0, nullable=False)
    processed_rows = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    error_count = Column(Integer, default=0, nullable=False)
    # List of {"row": <csv line>, "error": <message>, "data": <raw row json>}
    error_details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)


class ImportJobItem(Base):
    __tablename__ = "import_job_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    import_job_id = Column(
        String(36),
        ForeignKey("import_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    row_hash = Column(String(64), nullable=False)
    inserted = Column(Boolean, default=False, nullable=False)
    error = Column(Text, nullable=True)

    __table_args__ = (
        # A retried batch hashes to the same rows and is skipped
        UniqueConstraint("import_job_id", "row_hash"),
    )
