"""
Máquina de estados de la firma secuencial.

    Draft(1) -> PendingSign(2..4) -> Completed(5)
    PendingSign(2..4) -> Rejected(0) -> Draft(1) al reenviar

El siguiente orden sale del propio roster en vez de sumar uno, así que los
niveles ausentes se saltan. El firmante final siempre cierra el documento.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from modules.documents.approval.errors import (
    NotYourTurnError,
    TerminalStateError,
    WorkflowError,
)
from modules.documents.approval.roster import (
    ORIGINATION_ROLES,
    RosterEntry,
    SignerOrder,
    SignerRole,
    SignerRoster,
)


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    PENDING_SIGN = "pending_sign"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Transition:
    next_order: int
    next_status: DocumentStatus

    @property
    def completes(self) -> bool:
        return self.next_order == SignerOrder.COMPLETED


@dataclass(frozen=True)
class Actor:
    """Identidad que actúa sobre un documento, se pasa explícitamente a cada operación"""
    user_id: int
    name: str = ""
    is_admin: bool = False


@dataclass(frozen=True)
class RejectionRecord:
    user_id: int
    name: str
    reason: str
    rejected_at: datetime


@dataclass
class DocumentState:
    document_id: int
    current_order: int
    status: DocumentStatus
    version: int
    roster: SignerRoster


@dataclass(frozen=True)
class PlannedAction:
    """Movimiento validado de la máquina de estados, todavía sin aplicar"""
    acting_entry: RosterEntry
    transition: Transition
    read_order: int
    read_version: int


def compute_next(current_order: int, roster: SignerRoster, acting_role) -> Transition:
    """Siguiente orden y estado cuando ``acting_role`` aprueba en ``current_order``"""
    acting_role = SignerRole(acting_role)
    if acting_role == SignerRole.DIRECTOR:
        return Transition(SignerOrder.COMPLETED, DocumentStatus.APPROVED)

    base = current_order
    acting = roster.entry_for_role(acting_role)
    if acting is not None and acting.order > base:
        base = acting.order

    for order in roster.signer_orders():
        if order > base:
            return Transition(order, DocumentStatus.PENDING_SIGN)
    return Transition(SignerOrder.COMPLETED, DocumentStatus.APPROVED)


def is_terminal(order: int) -> bool:
    return order in (SignerOrder.COMPLETED, SignerOrder.REJECTED)


class ApprovalStateMachine:

    def __init__(self, state: DocumentState):
        self.state = state

    @property
    def roster(self) -> SignerRoster:
        return self.state.roster

    # ------------------------------------------------------------------
    # Guardas
    # ------------------------------------------------------------------

    def _check_not_terminal(self) -> None:
        if is_terminal(self.state.current_order):
            raise TerminalStateError(
                f"Document {self.state.document_id} is already {self.state.status.value}"
            )

    def acting_entry(self, actor: Actor) -> RosterEntry:
        """Entrada del turno actual, si pertenece a ``actor``"""
        order = self.state.current_order
        entry = self.roster.entry_at(order)
        if entry is None or entry.role in ORIGINATION_ROLES:
            raise NotYourTurnError(f"No signer is expected at order {order}")
        if entry.user_id != actor.user_id and not actor.is_admin:
            raise NotYourTurnError("It is not your turn to act on this document")
        return entry

    # ------------------------------------------------------------------
    # Planificación (sin cambiar el estado)
    # ------------------------------------------------------------------

    def plan_submission(self, actor: Actor) -> PlannedAction:
        self._check_not_terminal()
        if self.state.current_order != SignerOrder.DRAFT:
            raise WorkflowError("Only draft documents can be submitted")
        origination = {self.roster.author.user_id}
        if self.roster.clerk is not None:
            origination.add(self.roster.clerk.user_id)
        if actor.user_id not in origination and not actor.is_admin:
            raise NotYourTurnError("Only the author or the clerk can submit this document")

        self.roster.validate_complete()
        transition = compute_next(SignerOrder.DRAFT, self.roster, SignerRole.AUTHOR)
        return PlannedAction(self.roster.author, transition, self.state.current_order, self.state.version)

    def plan_approval(self, actor: Actor) -> PlannedAction:
        self._check_not_terminal()
        if self.state.current_order == SignerOrder.DRAFT:
            raise NotYourTurnError("The document has not been submitted yet")
        entry = self.acting_entry(actor)
        transition = compute_next(self.state.current_order, self.roster, entry.role)
        return PlannedAction(entry, transition, self.state.current_order, self.state.version)

    # ------------------------------------------------------------------
    # Aplicación
    # ------------------------------------------------------------------

    def apply(self, plan: PlannedAction) -> Transition:
        if (self.state.current_order, self.state.version) != (plan.read_order, plan.read_version):
            raise WorkflowError("The plan was computed for a different document state")
        self._move_to(plan.transition.next_order, plan.transition.next_status)
        return plan.transition

    def submit(self, actor: Actor) -> Transition:
        return self.apply(self.plan_submission(actor))

    def approve(self, actor: Actor, comment: Optional[str] = None) -> Transition:
        plan = self.plan_approval(actor)
        if comment and hasattr(plan.acting_entry, "comment"):
            plan.acting_entry.comment = comment
        return self.apply(plan)

    def reject(self, actor: Actor, reason: str, now: Optional[datetime] = None) -> RejectionRecord:
        self._check_not_terminal()
        if self.state.current_order == SignerOrder.DRAFT:
            raise NotYourTurnError("A draft cannot be rejected")
        self.acting_entry(actor)
        reason = (reason or "").strip()
        if not reason:
            raise WorkflowError("A rejection reason is required")

        record = RejectionRecord(
            user_id=actor.user_id,
            name=actor.name,
            reason=reason,
            rejected_at=now or datetime.utcnow(),
        )
        self._move_to(SignerOrder.REJECTED, DocumentStatus.REJECTED)
        return record

    def check_resubmission(self, actor: Actor) -> None:
        if self.state.current_order != SignerOrder.REJECTED:
            raise WorkflowError("Only rejected documents can be resubmitted")
        if actor.user_id != self.roster.author.user_id and not actor.is_admin:
            raise NotYourTurnError("Only the author can resubmit this document")

    def resubmit(self, actor: Actor) -> Transition:
        self.check_resubmission(actor)
        self.roster.clear_positions_from(SignerOrder.DRAFT + 1)
        self._move_to(SignerOrder.DRAFT, DocumentStatus.DRAFT)
        return Transition(SignerOrder.DRAFT, DocumentStatus.DRAFT)

    def _move_to(self, order: int, status: DocumentStatus) -> None:
        self.state.current_order = order
        self.state.status = status
        self.state.version += 1
        self.roster.progress_order = order
