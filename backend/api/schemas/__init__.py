"""
API request and response schemas.
"""

from .billing import (
    BillingInfoResponse,
    CreditBalanceResponse,
    CreditPurchaseRequest,
    TierLimitsResponse,
    UpgradeRequest,
    UpgradeResponse,
)
from .cover import CoverBatchRequest, CoverBatchResponse, CoverRequest, CoverResponse
from .project import (
    ChapterCreateRequest,
    ChapterResponse,
    ChapterUpdateRequest,
    ExportRequest,
    ExportResponse,
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectResponse,
)
from .user import PreferencesResponse, PreferencesUpdateRequest

__all__ = [
    "BillingInfoResponse",
    "CreditBalanceResponse",
    "CreditPurchaseRequest",
    "TierLimitsResponse",
    "UpgradeRequest",
    "UpgradeResponse",
    "CoverBatchRequest",
    "CoverBatchResponse",
    "CoverRequest",
    "CoverResponse",
    "ChapterCreateRequest",
    "ChapterResponse",
    "ChapterUpdateRequest",
    "ExportRequest",
    "ExportResponse",
    "ProjectCreateRequest",
    "ProjectListResponse",
    "ProjectResponse",
    "PreferencesResponse",
    "PreferencesUpdateRequest",
]
