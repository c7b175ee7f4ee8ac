"""
Typed Exception Hierarchy for the Royalty Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RoyaltyKernelError:

    RoyaltyKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidPlayTypeError
    |   +-- InvalidPaymentMethodError
    |
    +-- NotFoundError
    |   +-- WorkNotFoundError
    |   +-- TransactionNotFoundError
    |
    +-- AuthorizationError
    |   +-- LicenseRequiredError
    |   +-- MusicNotAvailableError
    |
    +-- StateConflictError
    |   +-- InvalidTransitionError
    |
    +-- ExternalServiceError
    |
    +-- InvalidConfigurationError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Missing or malformed input
                | INVALID_PLAY_TYPE           | Play type outside the known set
                | INVALID_PAYMENT_METHOD      | Payment method outside the known set
----------------|-----------------------------|-----------------------------------------
Not found       | MUSIC_NOT_FOUND             | Work id unknown to the catalog
                | TRANSACTION_NOT_FOUND       | Royalty transaction id unknown
----------------|-----------------------------|-----------------------------------------
Authorization   | AUTHORIZATION_ERROR         | Role or ownership mismatch
                | LICENSE_REQUIRED            | Business actor without active license
                | MUSIC_NOT_AVAILABLE         | Work unpublished / not approved /
                |                             | business type not allowed
----------------|-----------------------------|-----------------------------------------
State           | INVALID_TRANSITION          | Manual transition precondition failed
----------------|-----------------------------|-----------------------------------------
External        | EXTERNAL_SERVICE_ERROR      | Settlement / LMK collaborator failure
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_CONFIGURATION       | Royalty rate field missing for play type
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Write to a frozen field or delete

===============================================================================
HANDLING PATTERNS
===============================================================================

Batch and callback paths never raise StateConflictError per id: a losing
conditional update is reported as exclusion from the batch result (or a
False return from a settlement callback).  Single-record operator actions
(dispute, refund) raise InvalidTransitionError so the operator sees why
nothing happened.

    try:
        ledger.record_play(work_id, actor, play_type="commercial")
    except MusicNotAvailableError as e:
        return {"code": e.code, "allowed_types": e.allowed_types}
===============================================================================
"""


class RoyaltyKernelError(Exception):
    """
    Base exception for all royalty kernel errors.

    All subclasses carry a static `code` class attribute for
    machine-readable error identification.
    """

    code: str = "ROYALTY_KERNEL_ERROR"


# Validation


class ValidationError(RoyaltyKernelError):
    """Missing or malformed input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, reason_code: str | None = None):
        self.field = field
        self.reason_code = reason_code
        super().__init__(message)


class InvalidPlayTypeError(ValidationError):
    """Play type is not one of the known play types."""

    code: str = "INVALID_PLAY_TYPE"

    def __init__(self, play_type: str, allowed: tuple[str, ...]):
        self.play_type = play_type
        self.allowed = allowed
        super().__init__(
            f"Invalid play type '{play_type}', expected one of {', '.join(allowed)}",
            field="play_type",
        )


class InvalidPaymentMethodError(ValidationError):
    """Payment method is not one of the known methods."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, payment_method: str, allowed: tuple[str, ...]):
        self.payment_method = payment_method
        self.allowed = allowed
        super().__init__(
            f"Invalid payment method '{payment_method}', expected one of {', '.join(allowed)}",
            field="payment_method",
        )


# Not found


class NotFoundError(RoyaltyKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class WorkNotFoundError(NotFoundError):
    """Work id is unknown to the catalog."""

    code: str = "MUSIC_NOT_FOUND"

    def __init__(self, work_id: str):
        self.work_id = work_id
        super().__init__(f"Music not found: {work_id}")


class TransactionNotFoundError(NotFoundError):
    """Royalty transaction id is unknown."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Royalty transaction not found: {transaction_id}")


# Authorization


class AuthorizationError(RoyaltyKernelError):
    """Actor lacks the capability required for the action."""

    code: str = "AUTHORIZATION_ERROR"

    def __init__(self, actor_id: str, action: str, reason: str | None = None):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        message = f"Actor {actor_id} is not authorized to {action}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class LicenseRequiredError(AuthorizationError):
    """Business actor does not hold an active license."""

    code: str = "LICENSE_REQUIRED"

    def __init__(self, actor_id: str, license_status: str | None):
        self.license_status = license_status
        super().__init__(
            actor_id,
            "record_play",
            reason=f"active business license required (status={license_status})",
        )


class MusicNotAvailableError(AuthorizationError):
    """
    Work cannot be used by this business.

    Raised when the work is not published, inactive, not compliance-approved,
    or when the business type is not in the work's allowed list.
    """

    code: str = "MUSIC_NOT_AVAILABLE"

    def __init__(
        self,
        work_id: str,
        actor_id: str,
        reason: str,
        business_type: str | None = None,
        allowed_types: tuple[str, ...] = (),
    ):
        self.work_id = work_id
        self.business_type = business_type
        self.allowed_types = allowed_types
        super().__init__(actor_id, "record_play", reason=f"music {work_id} {reason}")


# State


class StateConflictError(RoyaltyKernelError):
    """A requested transition's precondition no longer holds."""

    code: str = "STATE_CONFLICT"


class InvalidTransitionError(StateConflictError):
    """Manual transition attempted from a state that does not allow it."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        transaction_id: str,
        workflow: str,
        current_state: str,
        action: str,
    ):
        self.transaction_id = transaction_id
        self.workflow = workflow
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} transaction {transaction_id}: "
            f"{workflow} status is '{current_state}'"
        )


# External collaborators


class ExternalServiceError(RoyaltyKernelError):
    """Settlement or compliance collaborator reported a failure."""

    code: str = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, detail: str):
        self.service = service
        self.detail = detail
        super().__init__(f"{service} failed: {detail}")


# Configuration


class InvalidConfigurationError(RoyaltyKernelError):
    """Royalty rate configuration lacks the field a play type needs."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, field: str, play_type: str):
        self.field = field
        self.play_type = play_type
        super().__init__(
            f"Royalty rate '{field}' is not configured (play type '{play_type}')"
        )


# Immutability


class ImmutabilityViolationError(RoyaltyKernelError):
    """Attempt to modify a frozen field or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
