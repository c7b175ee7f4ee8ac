"""
Settlement and reporting state machines (``royalty_kernel.domain.workflows``).

Responsibility
--------------
Pure value objects describing the two lifecycles a royalty transaction
moves through, and the transitions each service may request.  Services
turn a transition into a single conditional UPDATE keyed on
``from_state``; this module only says which moves exist.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* The reporting workflow's first move (``report``) is driven by payment
  completion only; it is marked ``triggered_by`` accordingly.
"""

from __future__ import annotations

from dataclasses import dataclass

from royalty_kernel.domain.values import PaymentStatus, ReportingStatus


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``manual`` transitions are operator actions; the rest are driven by
    collaborators (batch initiation, settlement or LMK callbacks).
    """
    from_state: str
    to_state: str
    action: str
    manual: bool = False
    triggered_by: str | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for one lifecycle of a transaction."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.name}: initial state {self.initial_state!r} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"{self.name}: transition {t.action!r} uses unknown state")

    def transition_for(self, action: str) -> Transition:
        for t in self.transitions:
            if t.action == action:
                return t
        raise KeyError(f"{self.name}: no transition named {action!r}")

    def can(self, state: str, action: str) -> bool:
        return any(t.from_state == state and t.action == action for t in self.transitions)

    def targets_from(self, state: str) -> frozenset[str]:
        return frozenset(t.to_state for t in self.transitions if t.from_state == state)


PAYMENT_WORKFLOW = Workflow(
    name="payment",
    description="Settlement of a royalty transaction",
    initial_state=PaymentStatus.PENDING.value,
    states=tuple(s.value for s in PaymentStatus),
    transitions=(
        Transition(PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value, "initiate"),
        Transition(PaymentStatus.PROCESSING.value, PaymentStatus.COMPLETED.value, "complete"),
        Transition(PaymentStatus.PROCESSING.value, PaymentStatus.FAILED.value, "fail"),
        Transition(PaymentStatus.COMPLETED.value, PaymentStatus.DISPUTED.value, "dispute", manual=True),
        Transition(PaymentStatus.DISPUTED.value, PaymentStatus.REFUNDED.value, "refund", manual=True),
    ),
    terminal_states=(PaymentStatus.FAILED.value, PaymentStatus.REFUNDED.value),
)

REPORTING_WORKFLOW = Workflow(
    name="lmk_reporting",
    description="Regulatory reporting of a settled royalty transaction",
    initial_state=ReportingStatus.PENDING.value,
    states=tuple(s.value for s in ReportingStatus),
    transitions=(
        Transition(
            ReportingStatus.PENDING.value,
            ReportingStatus.REPORTED.value,
            "report",
            triggered_by="payment.complete",
        ),
        Transition(ReportingStatus.REPORTED.value, ReportingStatus.CONFIRMED.value, "confirm"),
        Transition(ReportingStatus.REPORTED.value, ReportingStatus.DISPUTED.value, "dispute"),
    ),
    terminal_states=(ReportingStatus.CONFIRMED.value, ReportingStatus.DISPUTED.value),
)

# Payment states in which the reporting lifecycle may have left PENDING.
SETTLED_PAYMENT_STATES: tuple[PaymentStatus, ...] = (
    PaymentStatus.COMPLETED,
    PaymentStatus.DISPUTED,
    PaymentStatus.REFUNDED,
)
