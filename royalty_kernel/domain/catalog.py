"""
Catalog and actor collaborator types (``royalty_kernel.domain.catalog``).

Responsibility
--------------
Read-only views of the data this kernel receives from outside: works from
the catalog service and already-authenticated actors from the auth layer.
The kernel never writes these.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects plus the ``CatalogLookup``
protocol.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from royalty_kernel.domain.values import (
    ActorRole,
    ComplianceApproval,
    LicenseStatus,
    WorkStatus,
)


@dataclass(frozen=True)
class Stakeholder:
    """A rights holder listed on a work (publisher, composer, lyricist)."""

    name: str
    member_number: str | None
    share_percentage: Decimal


@dataclass(frozen=True)
class RoyaltyRateConfig:
    """Per-play unit rates.  A field may be None when the catalog omits it."""

    mechanical: Decimal | None = Decimal("0.001")
    performance: Decimal | None = Decimal("0.001")
    synchronization: Decimal | None = Decimal("0.005")


@dataclass(frozen=True)
class Work:
    """A licensed work as seen by the royalty kernel."""

    id: UUID
    artist_id: UUID
    duration: int
    royalty_rate: RoyaltyRateConfig = field(default_factory=RoyaltyRateConfig)
    title: str = ""
    status: WorkStatus = WorkStatus.PUBLISHED
    is_active: bool = True
    compliance_status: ComplianceApproval = ComplianceApproval.APPROVED
    copyright_owner: Stakeholder | None = None
    publishers: tuple[Stakeholder, ...] = ()
    composers: tuple[Stakeholder, ...] = ()
    lyricists: tuple[Stakeholder, ...] = ()
    allowed_business_types: tuple[str, ...] = ()

    @property
    def is_usable(self) -> bool:
        """Published, active and compliance-approved."""
        return (
            self.is_active
            and self.status == WorkStatus.PUBLISHED
            and self.compliance_status == ComplianceApproval.APPROVED
        )

    def allows_business_type(self, business_type: str | None) -> bool:
        """Empty allow-list means unrestricted."""
        return not self.allowed_business_types or business_type in self.allowed_business_types

    def is_available_for_business(self, business_type: str | None) -> bool:
        return self.is_usable and self.allows_business_type(business_type)


@dataclass(frozen=True)
class BusinessAddress:
    street: str | None = None
    city: str | None = None
    province: str | None = None


@dataclass(frozen=True)
class Actor:
    """An authenticated caller with its resolved role and status."""

    id: UUID
    role: ActorRole
    business_type: str | None = None
    license_status: LicenseStatus | None = None
    company_name: str | None = None
    address: BusinessAddress | None = None
    member_number: str | None = None
    is_verified: bool = False

    @property
    def has_active_license(self) -> bool:
        return self.role == ActorRole.BUSINESS and self.license_status == LicenseStatus.ACTIVE

    @property
    def is_verified_artist(self) -> bool:
        return self.role == ActorRole.ARTIST and self.is_verified

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


class CatalogLookup(Protocol):
    """Catalog collaborator: resolves a work id to a Work (or None)."""

    def get_work(self, work_id: UUID) -> Work | None:
        ...


class InMemoryCatalog:
    """Dictionary-backed CatalogLookup for embedding and tests."""

    def __init__(self, works: list[Work] | None = None):
        self._works: dict[UUID, Work] = {}
        for work in works or []:
            self.add(work)

    def add(self, work: Work) -> Work:
        self._works[work.id] = work
        return work

    def get_work(self, work_id: UUID) -> Work | None:
        return self._works.get(work_id)

    def __len__(self) -> int:
        return len(self._works)
