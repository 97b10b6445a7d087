"""
banking_modules.banking.workflows
=================================

Responsibility:
    Declarative state-machine definitions for bank transactions and
    reconciliation sessions.  ``BankingService`` looks up the transition for
    an action here and turns it into a conditional UPDATE guarded by the
    transition's ``from_state``.

Architecture:
    Module layer.  Pure data declarations -- no I/O, no imports from
    services or engines.

Invariants enforced:
    - Transitions are immutable (frozen dataclasses).
    - RECONCILED and COMPLETED are terminal: no transition leaves them.
    - ``reconcile`` is never requested directly; it fires only as part of
      completing the reconciliation the transaction belongs to.
"""

from dataclasses import dataclass

from banking_modules.banking.models import ReconciliationStatus, TransactionStatus


@dataclass(frozen=True)
class Transition:
    """
    A valid state transition in a workflow.

    Contract:
        Immutable edge in the workflow graph.  ``cascade`` marks transitions
        that only fire as a side effect of another workflow.
    """

    from_state: str
    to_state: str
    action: str
    cascade: bool = False


@dataclass(frozen=True)
class Workflow:
    """
    A state machine definition.

    Contract:
        ``initial_state`` and every ``from_state`` / ``to_state`` are members
        of ``states``.  ``terminal_states`` have no outgoing transitions.
    """

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def transition_for(self, action: str) -> Transition:
        """Return the unique transition named ``action``.

        Raises:
            KeyError: If the workflow declares no such action.
        """
        for transition in self.transitions:
            if transition.action == action:
                return transition
        raise KeyError(f"{self.name} has no action {action!r}")

    def allowed_actions(self, state: str) -> tuple[str, ...]:
        """Actions that may be requested from ``state``."""
        return tuple(
            t.action for t in self.transitions
            if t.from_state == state and not t.cascade
        )


# -----------------------------------------------------------------------------
# Bank Transaction Workflow
# -----------------------------------------------------------------------------

TRANSACTION_WORKFLOW = Workflow(
    name="bank_transaction",
    description="Bank statement transaction matching lifecycle",
    initial_state=TransactionStatus.UNMATCHED.value,
    states=tuple(s.value for s in TransactionStatus),
    transitions=(
        Transition(
            from_state=TransactionStatus.UNMATCHED.value,
            to_state=TransactionStatus.MATCHED.value,
            action="match",
        ),
        Transition(
            from_state=TransactionStatus.MATCHED.value,
            to_state=TransactionStatus.UNMATCHED.value,
            action="unmatch",
        ),
        Transition(
            from_state=TransactionStatus.MATCHED.value,
            to_state=TransactionStatus.RECONCILED.value,
            action="reconcile",
            cascade=True,
        ),
    ),
    terminal_states=(TransactionStatus.RECONCILED.value,),
)


# -----------------------------------------------------------------------------
# Reconciliation Workflow
# -----------------------------------------------------------------------------

RECONCILIATION_WORKFLOW = Workflow(
    name="bank_reconciliation",
    description="Dated reconciliation session for one bank account",
    initial_state=ReconciliationStatus.IN_PROGRESS.value,
    states=tuple(s.value for s in ReconciliationStatus),
    transitions=(
        Transition(
            from_state=ReconciliationStatus.IN_PROGRESS.value,
            to_state=ReconciliationStatus.COMPLETED.value,
            action="complete",
        ),
    ),
    terminal_states=(ReconciliationStatus.COMPLETED.value,),
)
