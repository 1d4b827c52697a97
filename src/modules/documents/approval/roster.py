"""
Roster de firmantes: la cadena ordenada de participantes de un documento.

El orden 1 es el origen (el autor, opcionalmente con una secretaría que
lleva el trámite). Los órdenes 2..4 son los niveles de aprobación y el
firmante final. Las entradas se recorren siempre en orden ascendente; la del
autor es informativa y nunca frena el avance.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, ClassVar, Dict, Iterable, Iterator, List, Optional

from modules.documents.approval.errors import (
    InvalidOrderError,
    MissingPositionError,
    OutOfBoundsError,
    PositionLockedError,
    RosterError,
    UnknownSignerError,
)
from modules.documents.approval.geometry import PAGE_HEIGHT_PT, PAGE_WIDTH_PT, is_inside_page


class SignerOrder:
    REJECTED = 0
    DRAFT = 1
    COMPLETED = 5


class SignerRole(str, Enum):
    AUTHOR = "author"
    CLERK = "clerk"
    ASSISTANT = "assistant"   # nivel 1
    DEPUTY = "deputy"         # nivel 2
    DIRECTOR = "director"     # firmante final


ROLE_TIERS = {
    SignerRole.AUTHOR: 0,
    SignerRole.CLERK: 0,
    SignerRole.ASSISTANT: 1,
    SignerRole.DEPUTY: 2,
    SignerRole.DIRECTOR: 3,
}

ORIGINATION_ROLES = frozenset({SignerRole.AUTHOR, SignerRole.CLERK})


@dataclass(frozen=True)
class SignaturePosition:
    page: int          # desde 1
    x: float           # puntos PDF
    y: float
    user_id: int


@dataclass
class RosterEntry:
    order: int
    user_id: int
    positions: List[SignaturePosition] = field(default_factory=list)

    role: ClassVar[SignerRole]

    @property
    def tier(self) -> int:
        return ROLE_TIERS[self.role]


@dataclass
class AuthorEntry(RosterEntry):
    role: ClassVar[SignerRole] = SignerRole.AUTHOR


@dataclass
class ClerkEntry(RosterEntry):
    role: ClassVar[SignerRole] = SignerRole.CLERK


@dataclass
class ApproverEntry(RosterEntry):
    approver_role: SignerRole = SignerRole.ASSISTANT
    comment: Optional[str] = None

    def __post_init__(self):
        if self.approver_role not in (SignerRole.ASSISTANT, SignerRole.DEPUTY):
            raise RosterError(f"{self.approver_role.value} is not an approver tier")

    @property
    def role(self) -> SignerRole:
        return self.approver_role

    @property
    def tier(self) -> int:
        return ROLE_TIERS[self.approver_role]


@dataclass
class FinalSignerEntry(RosterEntry):
    role: ClassVar[SignerRole] = SignerRole.DIRECTOR
    comment: Optional[str] = None


def make_entry(order: int, role, user_id: int) -> RosterEntry:
    """Crea la variante de entrada para ``role``; los roles inválidos se rechazan aquí"""
    try:
        role = SignerRole(role)
    except ValueError:
        raise RosterError(f"Unknown signer role: {role!r}")

    if role == SignerRole.AUTHOR:
        return AuthorEntry(order=order, user_id=user_id)
    if role == SignerRole.CLERK:
        return ClerkEntry(order=order, user_id=user_id)
    if role == SignerRole.DIRECTOR:
        return FinalSignerEntry(order=order, user_id=user_id)
    return ApproverEntry(order=order, user_id=user_id, approver_role=role)


class RosterView:
    """Vista ordenada y recorrible varias veces sobre las entradas del roster"""

    def __init__(self, source: Callable[[], Iterable[RosterEntry]], predicate: Callable[[RosterEntry], bool]):
        self._source = source
        self._predicate = predicate

    def __iter__(self) -> Iterator[RosterEntry]:
        for entry in self._source():
            if self._predicate(entry):
                yield entry


class SignerRoster:

    def __init__(
        self,
        author_id: int,
        clerk_id: Optional[int] = None,
        progress_order: int = SignerOrder.DRAFT,
        page_width_pt: float = PAGE_WIDTH_PT,
        page_height_pt: float = PAGE_HEIGHT_PT,
    ):
        self.author = AuthorEntry(order=SignerOrder.DRAFT, user_id=author_id)
        self.clerk: Optional[ClerkEntry] = None
        if clerk_id is not None:
            self.clerk = ClerkEntry(order=SignerOrder.DRAFT, user_id=clerk_id)
        # Niveles de aprobación y firmante final, por orden
        self._signers: Dict[int, RosterEntry] = {}
        self.progress_order = progress_order
        self.page_width_pt = page_width_pt
        self.page_height_pt = page_height_pt

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    @property
    def is_draft(self) -> bool:
        return self.progress_order == SignerOrder.DRAFT

    def entries(self) -> List[RosterEntry]:
        """Todas las entradas por orden; en el orden 1 el autor va antes que la secretaría"""
        head: List[RosterEntry] = [self.author]
        if self.clerk is not None:
            head.append(self.clerk)
        return head + [self._signers[o] for o in sorted(self._signers)]

    def entries_excluding(self, roles: Iterable) -> RosterView:
        excluded = {SignerRole(r) for r in roles}
        return RosterView(self.entries, lambda e: e.role not in excluded)

    def entry_at(self, order: int) -> Optional[RosterEntry]:
        if order == SignerOrder.DRAFT:
            return self.author
        return self._signers.get(order)

    def entry_for_role(self, role) -> Optional[RosterEntry]:
        role = SignerRole(role)
        for entry in self.entries():
            if entry.role == role:
                return entry
        return None

    def entries_for_user(self, user_id: int) -> List[RosterEntry]:
        return [e for e in self.entries() if e.user_id == user_id]

    def signer_orders(self) -> List[int]:
        """Órdenes que frenan el avance, ascendentes"""
        return sorted(o for o, e in self._signers.items() if e.role not in ORIGINATION_ROLES)

    def final_entry(self) -> Optional[RosterEntry]:
        return self.entry_for_role(SignerRole.DIRECTOR)

    # ------------------------------------------------------------------
    # Edición
    # ------------------------------------------------------------------

    def set_clerk(self, user_id: Optional[int]) -> Optional[ClerkEntry]:
        if not self.is_draft and self._identity_changes(self.clerk, user_id):
            raise InvalidOrderError("The clerk can only be changed while the document is a draft")
        self.clerk = ClerkEntry(order=SignerOrder.DRAFT, user_id=user_id) if user_id is not None else None
        return self.clerk

    def add_or_update_entry(self, order: int, role, user_id: int) -> RosterEntry:
        if order <= SignerOrder.DRAFT:
            raise InvalidOrderError(f"Order {order} must be greater than the author's order")
        if order >= SignerOrder.COMPLETED:
            raise InvalidOrderError(f"Order {order} is reserved for completed documents")

        entry = make_entry(order, role, user_id)
        if entry.role in ORIGINATION_ROLES:
            raise InvalidOrderError(f"Role {entry.role.value} belongs to the origination step")

        existing = self._signers.get(order)
        if self.is_locked(order) and (existing is None or existing.role != entry.role):
            raise PositionLockedError(f"Order {order} has already been reached, its signer cannot change")
        if existing is not None and not self.is_draft and existing.user_id != user_id:
            raise InvalidOrderError(f"Order {order} is already taken by another signer")

        if existing is not None and existing.user_id == user_id:
            entry.positions = list(existing.positions)

        candidate = dict(self._signers)
        candidate[order] = entry
        self._check_tiers(candidate)

        self._signers = candidate
        return entry

    def remove_entry(self, order: int) -> None:
        if not self.is_draft:
            raise InvalidOrderError("Signers can only be removed while the document is a draft")
        if order not in self._signers:
            raise UnknownSignerError(f"No signer at order {order}")
        del self._signers[order]

    def _target(self, order: int, role=None) -> RosterEntry:
        """Entrada de ``order``; ``role`` permite elegir a la secretaría en el origen"""
        if role is None:
            entry = self.entry_at(order)
        else:
            try:
                role = SignerRole(role)
            except ValueError:
                raise RosterError(f"Unknown signer role: {role!r}")
            entry = next((e for e in self.entries() if e.order == order and e.role == role), None)
        if entry is None:
            raise UnknownSignerError(f"No signer at order {order}" + (f" with role {role.value}" if role else ""))
        return entry

    def place_position(self, order: int, page: int, x: float, y: float, role=None) -> SignaturePosition:
        entry = self._target(order, role)
        self._check_unlocked(order)
        if page < 1:
            raise OutOfBoundsError(f"Page {page} does not exist")
        if not is_inside_page(x, y, self.page_width_pt, self.page_height_pt):
            raise OutOfBoundsError(
                f"Position ({x}, {y}) is outside the page "
                f"({self.page_width_pt}x{self.page_height_pt})"
            )

        position = SignaturePosition(page=page, x=float(x), y=float(y), user_id=entry.user_id)
        entry.positions.append(position)
        return position

    def remove_position(self, order: int, page: Optional[int] = None, role=None) -> int:
        """Quita las posiciones de ``order`` (solo de ``page`` si se indica); devuelve cuántas"""
        entry = self._target(order, role)
        self._check_unlocked(order)

        kept = [p for p in entry.positions if page is not None and p.page != page]
        removed = len(entry.positions) - len(kept)
        entry.positions = kept
        return removed

    def clear_positions_from(self, order: int) -> None:
        for entry in self.entries():
            if entry.order >= order:
                entry.positions = []

    def validate_complete(self) -> None:
        """Se puede enviar con firmante final y todos los firmantes colocados"""
        if self.final_entry() is None:
            raise InvalidOrderError("The roster needs a final signer")
        for order in self.signer_orders():
            if not self._signers[order].positions:
                raise MissingPositionError(f"Signer at order {order} has no signature position")

    # ------------------------------------------------------------------

    def is_locked(self, order: int) -> bool:
        """Las posiciones de un orden se congelan cuando la cadena llega a él"""
        progress = self.progress_order
        if progress == SignerOrder.DRAFT:
            return False
        if progress in (SignerOrder.REJECTED, SignerOrder.COMPLETED):
            return True
        return progress >= order

    def _check_unlocked(self, order: int) -> None:
        if self.is_locked(order):
            raise PositionLockedError(f"Signer at order {order} is signing or has already signed")

    @staticmethod
    def _identity_changes(entry: Optional[RosterEntry], user_id: Optional[int]) -> bool:
        current = entry.user_id if entry is not None else None
        return current != user_id

    @staticmethod
    def _check_tiers(signers: Dict[int, RosterEntry]) -> None:
        previous_tier = 0
        for order in sorted(signers):
            tier = signers[order].tier
            if tier <= previous_tier:
                raise InvalidOrderError(
                    f"Role {signers[order].role.value} at order {order} is out of tier sequence"
                )
            previous_tier = tier
