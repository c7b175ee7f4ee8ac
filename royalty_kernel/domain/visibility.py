"""
Role-based visibility of ledger records.

Artists see only transactions where they are the artist, businesses only
those where they are the business, admins everything (optionally narrowed
by the filters they pass).  Plain users see nothing.

Which reports an actor may open at all is decided by the ``Authorizer``:
the view capabilities it grants are stamped on the returned filter and
checked by the selector entry points.
"""

from uuid import UUID

from royalty_kernel.domain.authorization import Action, Authorizer, RoleCapabilityAuthorizer
from royalty_kernel.domain.catalog import Actor
from royalty_kernel.domain.dtos import ScopeFilter
from royalty_kernel.domain.values import ActorRole
from royalty_kernel.exceptions import AuthorizationError

VIEW_ACTIONS = (
    Action.VIEW_SUMMARY,
    Action.VIEW_BUSINESS_LEDGER,
    Action.VIEW_COMPLIANCE_REPORT,
    Action.VIEW_EARNINGS,
)


def scope_for_actor(
    actor: Actor,
    business_id: UUID | None = None,
    artist_id: UUID | None = None,
    work_id: UUID | None = None,
    authorizer: Authorizer | None = None,
) -> ScopeFilter:
    """
    Build the ScopeFilter an actor is allowed to query with.

    Filters an artist or business passes for *other* parties are ignored,
    the actor's own id always wins.

    Raises:
        AuthorizationError: For roles with no ledger visibility.
    """
    if actor.role == ActorRole.ADMIN:
        ids = dict(business_id=business_id, artist_id=artist_id, work_id=work_id)
    elif actor.role == ActorRole.ARTIST:
        ids = dict(business_id=business_id, artist_id=actor.id, work_id=work_id)
    elif actor.role == ActorRole.BUSINESS:
        ids = dict(business_id=actor.id, artist_id=artist_id, work_id=work_id)
    else:
        raise AuthorizationError(
            str(actor.id), "view_ledger", reason=f"role '{actor.role.value}' has no ledger access",
        )

    authorizer = authorizer or RoleCapabilityAuthorizer()
    granted = frozenset(a for a in VIEW_ACTIONS if authorizer.authorize(actor, a))
    return ScopeFilter(actor_id=actor.id, granted=granted, **ids)


def require_view(scope: ScopeFilter | None, action: str) -> None:
    """Raise AuthorizationError unless ``scope`` grants ``action``."""
    if scope is not None and not scope.allows(action):
        raise AuthorizationError(str(scope.actor_id), action)
