from .agency import (
    AgencyCreate,
    AgencyResponse,
    InvitationResponse,
    InviteCapCheckResponse,
    InviteUsersDetails,
    InviteUsersRequest,
    InviteUsersResponse,
    SeatUsageResponse,
)
from .billing import CreateCheckoutSessionRequest, CreateCheckoutSessionResponse
from .campaign import CampaignCreate, CampaignResponse, CampaignUpdate
from .imports import (
    ImportBatchRequest,
    ImportBatchResponse,
    ImportJobCreate,
    ImportJobResponse,
)
from .lead import LeadCreate, LeadResponse, LeadStatusUpdate, PaginatedLeadResponse

__all__ = [
    "AgencyCreate",
    "AgencyResponse",
    "InvitationResponse",
    "InviteCapCheckResponse",
    "InviteUsersDetails",
    "InviteUsersRequest",
    "InviteUsersResponse",
    "SeatUsageResponse",
    "CreateCheckoutSessionRequest",
    "CreateCheckoutSessionResponse",
    "CampaignCreate",
    "CampaignResponse",
    "CampaignUpdate",
    "ImportBatchRequest",
    "ImportBatchResponse",
    "ImportJobCreate",
    "ImportJobResponse",
    "LeadCreate",
    "LeadResponse",
    "LeadStatusUpdate",
    "PaginatedLeadResponse",
]
