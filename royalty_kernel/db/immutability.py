"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, ImmutabilityViolationError is raised and the flush is
aborted.  The database is never modified.

Lifecycle transitions are issued as guarded UPDATE statements that only
name mutable columns, so they never meet these listeners.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable                     | Mutable columns
---------------------|------------------------------------|------------------------------
RoyaltyTransaction   | From creation                      | MUTABLE_AFTER_CREATE
RoyaltyAuditEntry    | ALWAYS                             | none
RoyaltyRefund        | ALWAYS                             | updated_at, updated_by_id

None of the three may ever be deleted.
===============================================================================
"""

from sqlalchemy import event, inspect

from royalty_kernel.exceptions import ImmutabilityViolationError
from royalty_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_COLUMNS = frozenset({"updated_at", "updated_by_id"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_frozen_field(target, mutable: frozenset[str]) -> str | None:
    for attr in inspect(target).attrs:
        if attr.key in mutable:
            continue
        if attr.history.has_changes():
            return attr.key
    return None


# =============================================================================
# RoyaltyTransaction
# =============================================================================


def _check_royalty_transaction_immutability(mapper, connection, target):
    """Only payment, compliance, verification and audit-metadata columns may change."""
    from royalty_kernel.models.royalty_transaction import (
        MUTABLE_AFTER_CREATE,
        RoyaltyTransaction,
    )

    if not isinstance(target, RoyaltyTransaction):
        return

    field = _changed_frozen_field(target, MUTABLE_AFTER_CREATE)
    if field is not None:
        raise _blocked(
            "RoyaltyTransaction",
            target.id,
            "UPDATE",
            f"field '{field}' is frozen after creation",
            field=field,
        )


def _check_royalty_transaction_delete(mapper, connection, target):
    from royalty_kernel.models.royalty_transaction import RoyaltyTransaction

    if not isinstance(target, RoyaltyTransaction):
        return

    raise _blocked(
        "RoyaltyTransaction",
        target.id,
        "DELETE",
        "royalty transactions are never deleted; record a refund instead",
    )


# =============================================================================
# RoyaltyAuditEntry
# =============================================================================


def _check_audit_entry_immutability(mapper, connection, target):
    from royalty_kernel.models.audit_trail import RoyaltyAuditEntry

    if not isinstance(target, RoyaltyAuditEntry):
        return

    raise _blocked(
        "RoyaltyAuditEntry",
        target.id,
        "UPDATE",
        "audit trail entries are immutable",
    )


def _check_audit_entry_delete(mapper, connection, target):
    from royalty_kernel.models.audit_trail import RoyaltyAuditEntry

    if not isinstance(target, RoyaltyAuditEntry):
        return

    raise _blocked(
        "RoyaltyAuditEntry",
        target.id,
        "DELETE",
        "audit trail entries cannot be deleted",
    )


# =============================================================================
# RoyaltyRefund
# =============================================================================


def _check_refund_immutability(mapper, connection, target):
    from royalty_kernel.models.refund import RoyaltyRefund

    if not isinstance(target, RoyaltyRefund):
        return

    field = _changed_frozen_field(target, _AUDIT_METADATA_COLUMNS)
    if field is not None:
        raise _blocked(
            "RoyaltyRefund",
            target.id,
            "UPDATE",
            f"refund field '{field}' is immutable",
            field=field,
        )


def _check_refund_delete(mapper, connection, target):
    from royalty_kernel.models.refund import RoyaltyRefund

    if not isinstance(target, RoyaltyRefund):
        return

    raise _blocked(
        "RoyaltyRefund",
        target.id,
        "DELETE",
        "refund records cannot be deleted",
    )


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from royalty_kernel.models.audit_trail import RoyaltyAuditEntry
    from royalty_kernel.models.refund import RoyaltyRefund
    from royalty_kernel.models.royalty_transaction import RoyaltyTransaction

    return (
        (RoyaltyTransaction, "before_update", _check_royalty_transaction_immutability),
        (RoyaltyTransaction, "before_delete", _check_royalty_transaction_delete),
        (RoyaltyAuditEntry, "before_update", _check_audit_entry_immutability),
        (RoyaltyAuditEntry, "before_delete", _check_audit_entry_delete),
        (RoyaltyRefund, "before_update", _check_refund_immutability),
        (RoyaltyRefund, "before_delete", _check_refund_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after all models are imported but before any database
    operations begin.  create_tables() does so by default.
    """
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def unregister_immutability_listeners():
    """Remove the listeners.  FOR TESTING ONLY."""
    for target, name, fn in _listeners():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
