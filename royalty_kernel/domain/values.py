"""
Domain value enums (``royalty_kernel.domain.values``).

Pure value types shared by models, services and selectors.  ZERO I/O.
String-valued so they round-trip through String columns and JSON.
"""

from enum import Enum


class PlayType(str, Enum):
    """How a work was used at the business."""

    BACKGROUND = "background"
    FOREGROUND = "foreground"
    COMMERCIAL = "commercial"
    PROMOTIONAL = "promotional"


class PaymentStatus(str, Enum):
    """Settlement lifecycle of a royalty transaction.

    Transitions: PENDING -> PROCESSING -> {COMPLETED, FAILED};
    COMPLETED -> DISPUTED -> REFUNDED (manual).
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DISPUTED = "disputed"
    REFUNDED = "refunded"


class ReportingStatus(str, Enum):
    """LMK reporting lifecycle, gated on settlement.

    Transitions: PENDING -> REPORTED -> {CONFIRMED, DISPUTED}.
    """

    PENDING = "pending"
    REPORTED = "reported"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"
    CREDIT_CARD = "credit_card"
    DEBIT = "debit"


class BillingPeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class PlaySource(str, Enum):
    WEB_PLAYER = "web_player"
    MOBILE_APP = "mobile_app"
    API = "api"
    BULK_IMPORT = "bulk_import"


class AuditAction(str, Enum):
    """Actions recorded in a transaction's audit trail."""

    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_DISPUTED = "payment_disputed"
    PAYMENT_REFUNDED = "payment_refunded"
    LMK_CONFIRMED = "lmk_confirmed"
    LMK_DISPUTED = "lmk_disputed"
    TRANSACTION_VERIFIED = "transaction_verified"


class ActorRole(str, Enum):
    BUSINESS = "business"
    ARTIST = "artist"
    ADMIN = "admin"
    USER = "user"


class LicenseStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class WorkStatus(str, Enum):
    DRAFT = "draft"
    REVIEW = "review"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ComplianceApproval(str, Enum):
    """Catalog-side compliance gate on a work."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


def parse_enum(enum_cls, value):
    """Return ``enum_cls(value)`` or None when ``value`` is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None
