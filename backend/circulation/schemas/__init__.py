"""
Schemas Pydantic da aplicação.
"""

from circulation.schemas.base import (
    BaseSchema,
    ErrorResponse,
    RequestSchema,
)
from circulation.schemas.health import HealthResponse
from circulation.schemas.book import (
    BorrowerRead,
    CopyCreate,
    CopyRead,
    CopyStatusCounts,
    TitleRead,
)
from circulation.schemas.loan import (
    BulkCopyLoanStatusRequest,
    CopyLoanStatus,
    LoanCreate,
    LoanRead,
    OverdueRecordRead,
    OverdueRemindersResult,
    ReturnReceipt,
)
from circulation.schemas.reservation import (
    ExpireReservationsResult,
    Promotion,
    ReservationCreate,
    ReservationRead,
)
from circulation.schemas.notification import (
    JobStatusInfo,
    NotificationHistoryRecord,
    NotificationJob,
    OutboundMessage,
)

__all__ = [
    # Base
    "BaseSchema",
    "ErrorResponse",
    "RequestSchema",
    # Health
    "HealthResponse",
    # Book
    "BorrowerRead",
    "CopyCreate",
    "CopyRead",
    "CopyStatusCounts",
    "TitleRead",
    # Loan
    "BulkCopyLoanStatusRequest",
    "CopyLoanStatus",
    "LoanCreate",
    "LoanRead",
    "OverdueRecordRead",
    "OverdueRemindersResult",
    "ReturnReceipt",
    # Reservation
    "ExpireReservationsResult",
    "Promotion",
    "ReservationCreate",
    "ReservationRead",
    # Notification
    "JobStatusInfo",
    "NotificationHistoryRecord",
    "NotificationJob",
    "OutboundMessage",
]
