from config import get_settings
from modules.documents.approval.roster import (
    ORIGINATION_ROLES,
    SignaturePosition,
    SignerRole,
    SignerRoster,
)
from modules.documents.approval.workflow import DocumentState
from modules.documents.models.document import Document
from modules.documents.models.signer import SignaturePlacement, SignerEntry


def _positions(row: SignerEntry) -> list:
    return [SignaturePosition(page=p.page, x=p.x, y=p.y, user_id=row.user_id) for p in row.placements]


def to_roster(document: Document) -> SignerRoster:
    settings = get_settings()
    rows = list(document.signers)
    clerk_row = next((r for r in rows if r.role == SignerRole.CLERK), None)
    author_row = next((r for r in rows if r.role == SignerRole.AUTHOR), None)

    roster = SignerRoster(
        author_id=document.user_id,
        clerk_id=clerk_row.user_id if clerk_row else None,
        page_width_pt=settings.page_width_pt,
        page_height_pt=settings.page_height_pt,
    )
    if author_row is not None:
        roster.author.positions = _positions(author_row)
    if clerk_row is not None:
        roster.clerk.positions = _positions(clerk_row)

    for row in rows:
        if row.role in ORIGINATION_ROLES:
            continue
        entry = roster.add_or_update_entry(row.order, row.role, row.user_id)
        entry.positions = _positions(row)
        if hasattr(entry, "comment"):
            entry.comment = row.comment

    # Se carga como borrador para aceptar todas las entradas guardadas y luego se congela
    roster.progress_order = document.current_signer_order
    return roster


def to_state(document: Document) -> DocumentState:
    return DocumentState(
        document_id=document.id,
        current_order=document.current_signer_order,
        status=document.status,
        version=document.version,
        roster=to_roster(document),
    )


def sync_roster(document: Document, roster: SignerRoster) -> None:
    """Vuelca el roster sobre las filas de firmantes del documento"""
    existing = {(row.order, row.role): row for row in document.signers}

    for entry in roster.entries():
        key = (entry.order, entry.role)
        row = existing.pop(key, None)
        if row is None:
            row = SignerEntry(order=entry.order, role=entry.role, user_id=entry.user_id)
            document.signers.append(row)
        row.user_id = entry.user_id
        row.comment = getattr(entry, "comment", None)

        current = [(p.page, p.x, p.y) for p in row.placements]
        desired = [(p.page, p.x, p.y) for p in entry.positions]
        if current != desired:
            row.placements = [SignaturePlacement(page=p, x=x, y=y) for p, x, y in desired]

    for row in existing.values():
        document.signers.remove(row)


