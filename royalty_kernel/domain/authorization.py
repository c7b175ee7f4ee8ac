"""
Capability checks (``royalty_kernel.domain.authorization``).

Responsibility
--------------
Maps "who may do what" onto a single collaborator interface,
``Authorizer.authorize(actor, action, resource) -> bool``, instead of
role checks scattered through services.  The default
``RoleCapabilityAuthorizer`` reproduces the platform's role rules; an
embedding application may supply its own.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.
"""

from __future__ import annotations

from typing import Any, Protocol

from royalty_kernel.domain.catalog import Actor
from royalty_kernel.domain.values import ActorRole


class Action:
    """Capability names understood by the kernel."""

    RECORD_PLAY = "record_play"
    INITIATE_PAYMENT = "initiate_payment"
    RESOLVE_DISPUTE = "resolve_dispute"
    VERIFY_TRANSACTION = "verify_transaction"
    VIEW_BUSINESS_LEDGER = "view_business_ledger"
    VIEW_EARNINGS = "view_earnings"
    VIEW_COMPLIANCE_REPORT = "view_compliance_report"
    VIEW_SUMMARY = "view_summary"


class Authorizer(Protocol):
    def authorize(self, actor: Actor, action: str, resource: Any = None) -> bool:
        ...


class RoleCapabilityAuthorizer:
    """
    Role-based capability table.

    - record_play, view_business_ledger: business actor with an active license
    - view_earnings: verified artist
    - view_compliance_report: admin or artist
    - initiate_payment, resolve_dispute, verify_transaction: admin
    - view_summary: admin, artist, or licensed business
    """

    def authorize(self, actor: Actor, action: str, resource: Any = None) -> bool:
        if action in (Action.RECORD_PLAY, Action.VIEW_BUSINESS_LEDGER):
            return actor.has_active_license
        if action == Action.VIEW_EARNINGS:
            return actor.is_verified_artist
        if action == Action.VIEW_COMPLIANCE_REPORT:
            return actor.role in (ActorRole.ADMIN, ActorRole.ARTIST)
        if action in (Action.INITIATE_PAYMENT, Action.RESOLVE_DISPUTE, Action.VERIFY_TRANSACTION):
            return actor.is_admin
        if action == Action.VIEW_SUMMARY:
            return actor.is_admin or actor.role == ActorRole.ARTIST or actor.has_active_license
        return False


class AllowAllAuthorizer:
    """Authorizer for trusted in-process callers that already checked access."""

    def authorize(self, actor: Actor, action: str, resource: Any = None) -> bool:
        return True
