from src.agency_crm.core.database import Base
from src.agency_crm.models import agency, lead
from src.agency_crm.models.agency import (
    Agency,
    AgencyMember,
    AuditLog,
    Profile,
    UserInvitation,
)
from src.agency_crm.models.lead import Campaign, ImportJob, ImportJobItem, Lead

__all__ = [
    "Base",
    "agency",
    "lead",
    "Agency",
    "AgencyMember",
    "AuditLog",
    "Profile",
    "UserInvitation",
    "Campaign",
    "Lead",
    "ImportJob",
    "ImportJobItem",
]
