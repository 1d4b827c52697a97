import hashlib
import logging
import os
import time
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from modules.documents.approval.errors import (
    ConcurrentModificationError,
    DocumentNotFoundError,
    FastDocError,
    MissingPositionError,
)
from modules.documents.approval.roster import ORIGINATION_ROLES, SignerOrder, SignerRole
from modules.documents.approval.workflow import (
    Actor,
    ApprovalStateMachine,
    DocumentState,
    PlannedAction,
    Transition,
)
from modules.documents.models.document import Document
from modules.documents.models.rejection import Rejection
from modules.documents.models.signature import SignatureRecord
from modules.documents.models.superseded_file import SupersededFile
from modules.documents.services.cleanup import remove_superseded_files
from modules.documents.services.compositor import SignatureCompositor, build_signature_payload
from modules.documents.services.mappers import sync_roster, to_state
from modules.documents.services.profiles import Profile, get_profile, require_signature_image
from modules.documents.services.storage import LocalFileStorage
from modules.notifications.repositories.notification_repository import NotificationRepository
from modules.notifications.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class DocumentStateService:
    """
    Aplica la máquina de estados de aprobación a los documentos guardados.

    Cada transición se confirma con un UPDATE condicionado al orden y a la
    versión leídos al empezar; si otra acción llegó antes no se escribe nada
    y se lanza ConcurrentModificationError. El PDF firmado se sube con un
    nombre nuevo antes del commit y el archivo anterior solo se borra después
    de que el commit tuvo éxito.
    """

    @staticmethod
    def load(session: Session, document_id: int) -> Document:
        document = session.get(Document, document_id)
        if not document:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    @staticmethod
    def _check_expected_version(document: Document, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != document.version:
            raise ConcurrentModificationError(
                f"Document {document.id} changed since it was loaded "
                f"(version {expected_version}, now {document.version})"
            )

    @staticmethod
    def _conditional_update(session: Session, document_id: int, read_order: int, read_version: int,
                            values: dict) -> None:
        values = dict(values, version=read_version + 1, updated_at=datetime.utcnow())
        updated = (
            session.query(Document)
            .filter(
                Document.id == document_id,
                Document.current_signer_order == read_order,
                Document.version == read_version,
            )
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            raise ConcurrentModificationError(f"Document {document_id} was modified by another action")

    @staticmethod
    def _still_current(session: Session, document_id: int, plan: PlannedAction):
        def check():
            row = (
                session.query(Document.current_signer_order, Document.version)
                .filter(Document.id == document_id)
                .one_or_none()
            )
            if row is None or tuple(row) != (plan.read_order, plan.read_version):
                raise ConcurrentModificationError(
                    f"Document {document_id} advanced while waiting for the signing service"
                )
        return check

    @staticmethod
    def _signed_path(document: Document) -> str:
        base = os.path.basename(document.file_path)
        if base.startswith("signed_"):
            base = base.split("_", 2)[-1]
        return f"documents/{document.id}/signed_{time.time_ns()}_{base}"

    @staticmethod
    def _stamps(session: Session, state: DocumentState, plan: PlannedAction,
                comment: Optional[str]) -> List[Tuple[Profile, list]]:
        """
        Bloques de firma que estampa esta acción, agrupados por firmante.

        Al enviar firman juntos el autor y la secretaría, cada uno con su propia
        imagen y solo si colocaron posiciones. Al aprobar firma el turno actual
        y sin posiciones no hay aprobación posible.
        """
        entry = plan.acting_entry
        if entry.role in ORIGINATION_ROLES:
            user_ids = []
            for e in state.roster.entries():
                if e.order == entry.order and e.positions and e.user_id not in user_ids:
                    user_ids.append(e.user_id)
        else:
            user_ids = [entry.user_id]

        stamps = []
        for user_id in user_ids:
            profile = get_profile(session, user_id)
            blocks = build_signature_payload(state.roster, entry.order, comment, profile)
            if blocks:
                stamps.append((profile, blocks))

        if not stamps and entry.role not in ORIGINATION_ROLES:
            raise MissingPositionError(f"Signer at order {entry.order} has no signature position")
        return stamps

    @staticmethod
    def _sign_and_commit(
        session: Session,
        document: Document,
        state: DocumentState,
        plan: PlannedAction,
        actor: Actor,
        comment: Optional[str],
        storage: LocalFileStorage,
        compositor: Optional[SignatureCompositor],
    ) -> Transition:
        entry = plan.acting_entry
        stamps = DocumentStateService._stamps(session, state, plan, comment)

        new_path = None
        signed = None
        if stamps:
            # Todas las imágenes antes de llamar al servicio de firma
            images = [storage.download(require_signature_image(profile)) for profile, _ in stamps]
            if compositor is None:
                raise FastDocError("No signing service configured")
            signed = storage.download(document.file_path)
            for (profile, blocks), signature_bytes in zip(stamps, images):
                signed = compositor.submit(
                    blocks, signed, signature_bytes,
                    before_retry=DocumentStateService._still_current(session, document.id, plan),
                )
            new_path = DocumentStateService._signed_path(document)
            storage.upload(signed, new_path)
        stamped = {profile.user_id for profile, _ in stamps}

        transition = plan.transition
        old_path = document.file_path
        try:
            values = {
                "current_signer_order": transition.next_order,
                "status": transition.next_status,
            }
            if transition.completes:
                values["signed_date"] = datetime.utcnow()
            if new_path is not None:
                values["file_path"] = new_path
                values["file_size"] = len(signed)
            DocumentStateService._conditional_update(
                session, document.id, plan.read_order, plan.read_version, values
            )

            sync_roster(document, state.roster)
            for row in document.signers:
                if row.order == entry.order and (row.role == entry.role or row.user_id in stamped):
                    row.signed_at = datetime.utcnow()

            if signed is not None:
                digest = hashlib.sha256(signed).hexdigest()
                for profile, _ in stamps:
                    session.add(SignatureRecord(
                        document_id=document.id,
                        user_id=profile.user_id,
                        order=entry.order,
                        comment=getattr(entry, "comment", None) if profile.user_id == entry.user_id else None,
                        sha256_hash=digest,
                    ))
                session.add(SupersededFile(document_id=document.id, path=old_path))
            session.commit()
        except Exception:
            session.rollback()
            if new_path is not None:
                logger.warning("Discarding signed file %s of document %s", new_path, document.id)
                storage.remove(new_path)
            raise

        if actor.user_id != entry.user_id:
            logger.info("User %s acted on behalf of signer %s on document %s",
                        actor.user_id, entry.user_id, document.id)
        logger.info("Document %s advanced from %s to %s (%s)", document.id, plan.read_order,
                    transition.next_order, transition.next_status.value)

        if new_path is not None:
            remove_superseded_files(session, storage, document_id=document.id)
        return transition

    @staticmethod
    def _notify_advanced(session: Session, document: Document, state: DocumentState,
                         transition: Transition) -> None:
        service = NotificationService(NotificationRepository(session))
        if transition.completes:
            recipients = [e.user_id for e in state.roster.entries() if e.role in (SignerRole.AUTHOR, SignerRole.CLERK)]
        else:
            next_entry = state.roster.entry_at(transition.next_order)
            recipients = [next_entry.user_id] if next_entry else []
        service.notify_document_advanced(
            document.id, document.subject, transition.next_order, transition.completes, recipients
        )

    # ------------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------------

    @staticmethod
    def submit_document(session: Session, document_id: int, actor: Actor, storage: LocalFileStorage,
                        compositor: Optional[SignatureCompositor] = None,
                        expected_version: Optional[int] = None) -> Transition:
        """Envía el borrador a la cadena de firma (Borrador -> primer firmante)"""
        document = DocumentStateService.load(session, document_id)
        DocumentStateService._check_expected_version(document, expected_version)
        state = to_state(document)
        plan = ApprovalStateMachine(state).plan_submission(actor)
        transition = DocumentStateService._sign_and_commit(
            session, document, state, plan, actor, None, storage, compositor
        )
        DocumentStateService._notify_advanced(session, document, state, transition)
        return transition

    @staticmethod
    def approve_document(session: Session, document_id: int, actor: Actor, comment: Optional[str],
                         storage: LocalFileStorage, compositor: Optional[SignatureCompositor],
                         expected_version: Optional[int] = None) -> Transition:
        """Firma por el turno actual y pasa el documento al siguiente firmante"""
        document = DocumentStateService.load(session, document_id)
        DocumentStateService._check_expected_version(document, expected_version)
        state = to_state(document)
        plan = ApprovalStateMachine(state).plan_approval(actor)
        comment = (comment or "").strip() or None
        if comment and hasattr(plan.acting_entry, "comment"):
            plan.acting_entry.comment = comment
        transition = DocumentStateService._sign_and_commit(
            session, document, state, plan, actor, comment, storage, compositor
        )
        DocumentStateService._notify_advanced(session, document, state, transition)
        return transition

    @staticmethod
    def reject_document(session: Session, document_id: int, actor: Actor, reason: str,
                        expected_version: Optional[int] = None) -> Rejection:
        """Devuelve el documento a su autor (-> Rechazado)"""
        document = DocumentStateService.load(session, document_id)
        DocumentStateService._check_expected_version(document, expected_version)
        state = to_state(document)
        read_order, read_version = state.current_order, state.version

        record = ApprovalStateMachine(state).reject(actor, reason)
        try:
            DocumentStateService._conditional_update(session, document.id, read_order, read_version, {
                "current_signer_order": state.current_order,
                "status": state.status,
            })
            rejection = Rejection(
                document_id=document.id,
                user_id=record.user_id,
                name=record.name,
                reason=record.reason,
                order=read_order,
                created_at=record.rejected_at,
            )
            session.add(rejection)
            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.info("Document %s rejected at order %s by user %s", document.id, read_order, actor.user_id)
        recipients = [e.user_id for e in state.roster.entries() if e.role in (SignerRole.AUTHOR, SignerRole.CLERK)]
        NotificationService(NotificationRepository(session)).notify_document_rejected(
            document.id, document.subject, record.name, record.reason, recipients
        )
        return rejection

    @staticmethod
    def resubmit_document(session: Session, document_id: int, actor: Actor,
                          expected_version: Optional[int] = None) -> Transition:
        """Rechazado -> Borrador; se borran las posiciones de los firmantes después del autor"""
        document = DocumentStateService.load(session, document_id)
        DocumentStateService._check_expected_version(document, expected_version)
        state = to_state(document)
        read_order, read_version = state.current_order, state.version

        transition = ApprovalStateMachine(state).resubmit(actor)
        try:
            DocumentStateService._conditional_update(session, document.id, read_order, read_version, {
                "current_signer_order": transition.next_order,
                "status": transition.next_status,
            })
            sync_roster(document, state.roster)
            for row in document.signers:
                row.signed_at = None
                if row.order > SignerOrder.DRAFT:
                    row.comment = None
            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.info("Document %s resubmitted as draft", document.id)
        return transition

    @staticmethod
    def get_allowed_actions(document: Document, actor: Actor) -> List[str]:
        """
        Acciones que ``actor`` puede hacer ahora sobre el documento
        """
        machine = ApprovalStateMachine(to_state(document))
        actions = []
        checks = {
            "submit": lambda m: m.plan_submission(actor),
            "approve": lambda m: m.plan_approval(actor),
            "reject": lambda m: m.plan_approval(actor),
            "resubmit": lambda m: m.check_resubmission(actor),
        }
        for action, check in checks.items():
            try:
                check(machine)
            except FastDocError:
                continue
            actions.append(action)
        return actions
