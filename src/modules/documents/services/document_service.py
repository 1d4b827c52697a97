import hashlib
import io
import logging
import os
from typing import Iterable, List, Optional

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError
from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from modules.documents.approval.errors import (
    DocumentNotFoundError,
    FetchError,
    NotYourTurnError,
    OutOfBoundsError,
    TerminalStateError,
    UnknownSignerError,
)
from modules.documents.approval.geometry import to_dom_pixel, to_pdf_point
from modules.documents.approval.roster import SignaturePosition, SignerOrder, SignerRole
from modules.documents.approval.workflow import Actor, is_terminal
from modules.documents.models.document import Document, DocumentKind, DocumentStatus
from modules.documents.models.signer import SignerEntry
from modules.documents.models.user import User, UserRole
from modules.documents.services.mappers import sync_roster, to_roster
from modules.documents.services.storage import LocalFileStorage
from config import get_settings

logger = logging.getLogger(__name__)

class DocumentService:

    @staticmethod
    def get_documents_by_user(session: Session, user_id: int) -> list[Document]:
        """
        Documentos que ve un usuario: todos para secretaría y administradores,
        si no, los que escribió o en los que aparece como firmante
        """
        user = session.get(User, user_id)

        if user.role in [UserRole.CLERK, UserRole.ADMIN]:
            return session.query(Document).order_by(Document.id.desc()).all()

        signed_ids = session.query(SignerEntry.document_id).filter(SignerEntry.user_id == user_id)
        return (
            session.query(Document)
            .filter(or_(Document.user_id == user_id, Document.id.in_(signed_ids)))
            .order_by(Document.id.desc())
            .all()
        )

    @staticmethod
    def get_document(session: Session, document_id: int) -> Document:
        document = session.get(Document, document_id)
        if not document:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    @staticmethod
    def upload_document(
        session: Session,
        user_id: int,
        file_contents: bytes,
        filename: str,
        content_type: str,
        storage: LocalFileStorage,
        subject: Optional[str] = None,
        kind: DocumentKind = DocumentKind.MEMO,
        doc_number: Optional[str] = None,
        is_report_memo: bool = False,
        max_file_size: int = 10 * 1024 * 1024  # 10 MB por defecto
    ) -> Document:
        """
        Procesa y guarda un documento completo:
        - Valida el archivo
        - Determina nombre único
        - Guarda archivo en el almacenamiento
        - Crea el borrador con el autor en el paso 1
        """

        # 1) Validaciones
        DocumentService._validate_file(file_contents, filename, content_type, max_file_size)

        # 2) Determinar nombre único
        unique_name = DocumentService._get_unique_filename(session, user_id, filename)

        # 3) Guardar archivo (nunca sobrescribe)
        file_path = f"documents/{user_id}/{unique_name}"
        storage.upload(file_contents, file_path)

        # 4) Crear registro en BD
        document = Document(
            subject=subject or os.path.splitext(unique_name)[0],
            doc_number=doc_number,
            kind=kind,
            is_report_memo=is_report_memo,
            name=unique_name,
            file_path=file_path,
            file_size=len(file_contents),
            status=DocumentStatus.DRAFT,
            current_signer_order=SignerOrder.DRAFT,
            user_id=user_id,
        )
        document.signers.append(SignerEntry(order=SignerOrder.DRAFT, role=SignerRole.AUTHOR, user_id=user_id))
        session.add(document)
        session.commit()

        logger.info("Document %s uploaded by user %s as %s", document.id, user_id, file_path)
        return document

    @staticmethod
    def _validate_file(file_contents: bytes, filename: str, content_type: str, max_file_size: int):
        """Valida el archivo subido"""

        # Validar MIME type
        if content_type != "application/pdf":
            raise HTTPException(400, "El archivo debe ser un PDF")

        # Validar extensión
        if not filename.lower().endswith(".pdf"):
            raise HTTPException(400, "La extensión debe ser .pdf")

        # Validar tamaño
        if len(file_contents) > max_file_size:
            raise HTTPException(400, f"El tamaño máximo es {max_file_size // (1024*1024)} MB")

        # Validar integridad del PDF
        try:
            reader = PdfReader(io.BytesIO(file_contents))
            if len(reader.pages) == 0:
                raise HTTPException(400, "PDF inválido o dañado")
        except (PdfReadError, ValueError, KeyError, TypeError):
            raise HTTPException(400, "PDF inválido o dañado")

    @staticmethod
    def _get_unique_filename(session: Session, user_id: int, original_name: str) -> str:
        """Determina el nombre único que se usará para el archivo"""

        # Separar nombre y extensión
        base, ext = os.path.splitext(original_name)

        # Consultar documentos existentes del usuario con el mismo nombre base
        existing_names = (
            session.query(Document.name)
            .filter(
                Document.user_id == user_id,
                or_(
                    Document.name == original_name,  # Nombre exacto
                    Document.name.ilike(f"{base}_%{ext}")  # Con sufijo _n
                )
            )
            .all()
        )
        existing = [row[0] for row in existing_names]

        # Si no hay duplicados, usar el nombre original
        if not existing:
            return original_name

        # Extraer sufijos _n ya usados
        used_numbers = set()

        for existing_name in existing:
            if existing_name == original_name:
                used_numbers.add(0)  # Consideramos que el original es _0
            elif existing_name.startswith(f"{base}_") and existing_name.endswith(ext):
                number_str = existing_name[len(base) + 1:len(existing_name) - len(ext)]
                if number_str.isdigit():
                    used_numbers.add(int(number_str))

        # Encontrar el siguiente número disponible
        next_num = 1
        while next_num in used_numbers:
            next_num += 1

        return f"{base}_{next_num}{ext}"

    # ------------------------------------------------------------------
    # Roster de firmantes
    # ------------------------------------------------------------------

    @staticmethod
    def _check_can_edit(document: Document, actor: Actor) -> None:
        editors = {row.user_id for row in document.signers if row.role in (SignerRole.AUTHOR, SignerRole.CLERK)}
        editors.add(document.user_id)
        if actor.user_id not in editors and not actor.is_admin:
            raise NotYourTurnError("Only the author or the clerk can manage signers of this document")

    @staticmethod
    def _check_users_exist(session: Session, user_ids: Iterable[int]) -> None:
        for user_id in set(user_ids):
            if session.get(User, user_id) is None:
                raise UnknownSignerError(f"User {user_id} does not exist")

    @staticmethod
    def update_signers(session: Session, document_id: int, actor: Actor, signers: List[dict],
                       clerk_id: Optional[int] = None) -> Document:
        """
        Define la cadena de firmantes. ``signers`` trae ``{"order", "role", "user_id"}``;
        en borrador se quitan los órdenes que no vienen en la lista.
        """
        document = DocumentService.get_document(session, document_id)
        DocumentService._check_can_edit(document, actor)
        if is_terminal(document.current_signer_order):
            raise TerminalStateError(f"Document {document_id} is {document.status.value}, its signers are final")
        DocumentService._check_users_exist(
            session, [s["user_id"] for s in signers] + ([clerk_id] if clerk_id is not None else [])
        )

        roster = to_roster(document)
        if roster.is_draft:
            wanted = {s["order"] for s in signers}
            for entry in list(roster.entries_excluding({SignerRole.AUTHOR, SignerRole.CLERK})):
                if entry.order not in wanted:
                    roster.remove_entry(entry.order)
        for signer in sorted(signers, key=lambda s: s["order"]):
            roster.add_or_update_entry(signer["order"], signer["role"], signer["user_id"])
        if clerk_id is not None or roster.is_draft:
            roster.set_clerk(clerk_id)

        sync_roster(document, roster)
        session.commit()
        return document

    @staticmethod
    def pending_signers(document: Document) -> list:
        """Firmantes que aún deben firmar, sin autor ni secretaría"""
        roster = to_roster(document)
        order = document.current_signer_order
        if is_terminal(order):
            return []
        return [e for e in roster.entries_excluding({SignerRole.AUTHOR, SignerRole.CLERK}) if e.order >= order]

    # ------------------------------------------------------------------
    # Posiciones de firma
    # ------------------------------------------------------------------

    @staticmethod
    def _page_count(storage: LocalFileStorage, document: Document) -> int:
        data = storage.download(document.file_path)
        try:
            return len(PdfReader(io.BytesIO(data)).pages)
        except (PdfReadError, ValueError, KeyError, TypeError) as e:
            raise FetchError(f"Working PDF of document {document.id} cannot be read: {e}")

    @staticmethod
    def place_position(session: Session, document_id: int, actor: Actor, order: int, page: int,
                       x: float, y: float, storage: LocalFileStorage,
                       role: Optional[SignerRole] = None) -> SignaturePosition:
        """Coloca la firma del firmante de ``order`` en ``page`` (puntos PDF)"""
        document = DocumentService.get_document(session, document_id)
        DocumentService._check_can_edit(document, actor)

        page_count = DocumentService._page_count(storage, document)
        if page > page_count:
            raise OutOfBoundsError(f"Page {page} does not exist, the document has {page_count}")

        roster = to_roster(document)
        position = roster.place_position(order, page, x, y, role=role)
        sync_roster(document, roster)
        session.commit()
        return position

    @staticmethod
    def place_position_from_click(session: Session, document_id: int, actor: Actor, order: int, page: int,
                                  dom_x: float, dom_y: float, rendered_width: float, rendered_height: float,
                                  storage: LocalFileStorage,
                                  role: Optional[SignerRole] = None) -> SignaturePosition:
        """Igual que place_position, a partir de un click sobre la página renderizada"""
        settings = get_settings()
        x, y = to_pdf_point(dom_x, dom_y, rendered_width, rendered_height,
                            settings.page_width_pt, settings.page_height_pt)
        return DocumentService.place_position(session, document_id, actor, order, page, x, y, storage, role)

    @staticmethod
    def remove_position(session: Session, document_id: int, actor: Actor, order: int,
                        page: Optional[int] = None,
                        role: Optional[SignerRole] = None) -> int:
        document = DocumentService.get_document(session, document_id)
        DocumentService._check_can_edit(document, actor)

        roster = to_roster(document)
        removed = roster.remove_position(order, page, role=role)
        sync_roster(document, roster)
        session.commit()
        return removed

    @staticmethod
    def list_positions(document: Document, rendered_width: Optional[float] = None,
                       rendered_height: Optional[float] = None) -> List[dict]:
        """Posiciones colocadas, con coordenadas DOM si se indica el tamaño renderizado"""
        settings = get_settings()
        items = []
        for entry in to_roster(document).entries():
            for position in entry.positions:
                item = {
                    "order": entry.order,
                    "role": entry.role.value,
                    "user_id": entry.user_id,
                    "page": position.page,
                    "x": position.x,
                    "y": position.y,
                }
                if rendered_width and rendered_height:
                    item["dom_x"], item["dom_y"] = to_dom_pixel(
                        position.x, position.y, rendered_width, rendered_height,
                        settings.page_width_pt, settings.page_height_pt,
                    )
                items.append(item)
        return items

    # ------------------------------------------------------------------

    @staticmethod
    def download_document(session: Session, document_id: int, storage: LocalFileStorage) -> bytes:
        """
        Devuelve el PDF si el hash coincide con la última firma
        """
        document = DocumentService.get_document(session, document_id)
        data = storage.download(document.file_path)

        if document.signatures:
            last_sig = document.signatures[-1]
            if hashlib.sha256(data).hexdigest() != last_sig.sha256_hash:
                raise FetchError("Integridad comprometida: hash no coincide")
        return data
