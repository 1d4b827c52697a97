import hashlib
import os

import pytest

from conftest import FakeCompositor, create_dummy_pdf_bytes, create_dummy_user
from modules.documents.approval.errors import (
    CompositionTimeoutError,
    ConcurrentModificationError,
    MissingPositionError,
    NotYourTurnError,
    PositionLockedError,
    SignatureImageMissingError,
    TerminalStateError,
)
from modules.documents.approval.roster import SignerRole
from modules.documents.approval.workflow import Actor
from modules.documents.models.document import Document, DocumentStatus
from modules.documents.models.signature import SignatureRecord
from modules.documents.models.superseded_file import SupersededFile
from modules.documents.models.user import UserRole
from modules.documents.services.cleanup import remove_superseded_files
from modules.documents.services.document_service import DocumentService
from modules.documents.services.document_state_service import DocumentStateService
from modules.notifications.models.notification import Notification

SIGNERS = [
    {"order": 2, "role": SignerRole.ASSISTANT, "user_id": 2},
    {"order": 3, "role": SignerRole.DEPUTY, "user_id": 3},
    {"order": 4, "role": SignerRole.DIRECTOR, "user_id": 4},
]


@pytest.fixture
def users(session, storage):
    return {
        "author": create_dummy_user(session, 1, storage=storage),
        "assistant": create_dummy_user(session, 2, UserRole.ASSISTANT_DIRECTOR, storage=storage),
        "deputy": create_dummy_user(session, 3, UserRole.DEPUTY_DIRECTOR, storage=storage),
        "director": create_dummy_user(session, 4, UserRole.DIRECTOR, storage=storage),
        "admin": create_dummy_user(session, 9, UserRole.ADMIN),
        "no_signature": create_dummy_user(session, 6, UserRole.ASSISTANT_DIRECTOR),
    }


def prepared_document(session, storage, signers=SIGNERS):
    doc = DocumentService.upload_document(
        session, 1, create_dummy_pdf_bytes(), "memo.pdf", "application/pdf", storage, subject="Memo"
    )
    DocumentService.update_signers(session, doc.id, Actor(1), signers)
    for signer in signers:
        DocumentService.place_position(session, doc.id, Actor(1), signer["order"], 1, 100, 100 * signer["order"], storage)
    return doc.id


def submitted_document(session, storage, signers=SIGNERS):
    doc_id = prepared_document(session, storage, signers)
    DocumentStateService.submit_document(session, doc_id, Actor(1), storage)
    return doc_id


def stored_files(storage):
    return sorted(
        os.path.relpath(os.path.join(d, f), storage.root).replace(os.sep, "/")
        for d, _, files in os.walk(storage.root) for f in files
        if f.endswith(".pdf")
    )


def events_for(session, user_id):
    return [n.event for n in session.query(Notification).filter_by(user_id=user_id).order_by(Notification.id)]


def test_enviar_borrador_pasa_al_primer_firmante(session, storage, users):
    doc_id = prepared_document(session, storage)
    transition = DocumentStateService.submit_document(session, doc_id, Actor(1), storage)
    doc = session.get(Document, doc_id)
    assert transition.next_order == 2
    assert (doc.current_signer_order, doc.status, doc.version) == (2, DocumentStatus.PENDING_SIGN, 2)
    assert events_for(session, 2) == ["document.advanced"]


def test_aprobar_firma_y_reemplaza_el_pdf(session, storage, users):
    doc_id = submitted_document(session, storage)
    old_path = session.get(Document, doc_id).file_path
    compositor = FakeCompositor()

    transition = DocumentStateService.approve_document(session, doc_id, Actor(2), "Revisado", storage, compositor)

    doc = session.get(Document, doc_id)
    assert transition.next_order == 3
    assert doc.current_signer_order == 3
    assert doc.file_path != old_path
    assert doc.file_path.startswith(f"documents/{doc_id}/signed_")
    assert not storage.exists(old_path)
    assert stored_files(storage) == [doc.file_path]
    assert session.query(SupersededFile).count() == 0

    assert len(compositor.calls) == 1
    assert compositor.calls[0][0].comment == "Revisado"

    record = session.query(SignatureRecord).one()
    assert (record.user_id, record.order, record.comment) == (2, 2, "Revisado")
    assert record.sha256_hash == hashlib.sha256(storage.download(doc.file_path)).hexdigest()
    assistant_row = next(s for s in doc.signers if s.order == 2)
    assert assistant_row.comment == "Revisado"
    assert assistant_row.signed_at is not None
    assert DocumentService.download_document(session, doc_id, storage) == storage.download(doc.file_path)
    assert events_for(session, 3) == ["document.advanced"]


def test_cadena_completa_hasta_aprobado(session, storage, users):
    doc_id = submitted_document(session, storage)
    compositor = FakeCompositor()
    for user_id in (2, 3, 4):
        DocumentStateService.approve_document(session, doc_id, Actor(user_id), None, storage, compositor)

    doc = session.get(Document, doc_id)
    assert (doc.current_signer_order, doc.status) == (5, DocumentStatus.APPROVED)
    assert doc.signed_date is not None
    assert doc.version == 5
    assert [r.order for r in doc.signatures] == [2, 3, 4]
    assert len(stored_files(storage)) == 1
    assert events_for(session, 1)[-1] == "document.advanced"


def test_director_cierra_aunque_falten_niveles(session, storage, users):
    doc_id = submitted_document(session, storage, [{"order": 4, "role": "director", "user_id": 4}])
    assert session.get(Document, doc_id).current_signer_order == 4
    compositor = FakeCompositor()

    transition = DocumentStateService.approve_document(session, doc_id, Actor(4), None, storage, compositor)

    assert transition.completes
    assert compositor.calls[0][0].comment == "Approved"
    assert session.get(Document, doc_id).status == DocumentStatus.APPROVED


def test_no_es_su_turno_no_cambia_nada(session, storage, users):
    doc_id = submitted_document(session, storage)
    with pytest.raises(NotYourTurnError):
        DocumentStateService.approve_document(session, doc_id, Actor(3), None, storage, FakeCompositor())
    assert session.get(Document, doc_id).version == 2


def test_administrador_firma_por_el_titular(session, storage, users):
    doc_id = submitted_document(session, storage)
    DocumentStateService.approve_document(session, doc_id, Actor(9, is_admin=True), None, storage, FakeCompositor())
    record = session.query(SignatureRecord).one()
    assert record.user_id == 2
    assert session.get(Document, doc_id).current_signer_order == 3


def test_firma_sin_imagen_falla_antes_del_servicio(session, storage, users):
    signers = [{"order": 2, "role": "assistant", "user_id": 6}, {"order": 4, "role": "director", "user_id": 4}]
    doc_id = submitted_document(session, storage, signers)
    compositor = FakeCompositor()
    with pytest.raises(SignatureImageMissingError):
        DocumentStateService.approve_document(session, doc_id, Actor(6), None, storage, compositor)
    assert compositor.calls == []
    assert session.get(Document, doc_id).current_signer_order == 2


def test_fallo_del_servicio_no_avanza(session, storage, users):
    doc_id = submitted_document(session, storage)
    before = stored_files(storage)
    with pytest.raises(CompositionTimeoutError):
        DocumentStateService.approve_document(
            session, doc_id, Actor(2), None, storage, FakeCompositor(error=CompositionTimeoutError("slow"))
        )
    doc = session.get(Document, doc_id)
    assert (doc.current_signer_order, doc.version) == (2, 2)
    assert stored_files(storage) == before


def test_modificacion_concurrente_descarta_el_pdf_nuevo(session, storage, users):
    doc_id = submitted_document(session, storage)
    old_path = session.get(Document, doc_id).file_path

    def someone_else_acts():
        session.query(Document).filter(Document.id == doc_id).update(
            {"version": Document.version + 1}, synchronize_session=False
        )
        session.commit()

    with pytest.raises(ConcurrentModificationError):
        DocumentStateService.approve_document(
            session, doc_id, Actor(2), None, storage, FakeCompositor(on_submit=someone_else_acts)
        )

    doc = session.get(Document, doc_id)
    assert doc.file_path == old_path
    assert doc.current_signer_order == 2
    assert stored_files(storage) == [old_path]
    assert session.query(SignatureRecord).count() == 0


def test_version_esperada_obsoleta(session, storage, users):
    doc_id = submitted_document(session, storage)
    with pytest.raises(ConcurrentModificationError):
        DocumentStateService.approve_document(
            session, doc_id, Actor(2), None, storage, FakeCompositor(), expected_version=1
        )


def test_rechazo_y_reenvio(session, storage, users):
    doc_id = submitted_document(session, storage)
    DocumentStateService.approve_document(session, doc_id, Actor(2), None, storage, FakeCompositor())

    rejection = DocumentStateService.reject_document(session, doc_id, Actor(3, name="Subdirector"), "ข้อมูลไม่ครบ")
    doc = session.get(Document, doc_id)
    assert (doc.current_signer_order, doc.status) == (0, DocumentStatus.REJECTED)
    assert rejection.reason == "ข้อมูลไม่ครบ"
    assert rejection.order == 3
    assert doc.last_rejection.name == "Subdirector"
    assert events_for(session, 1)[-1] == "document.rejected"

    with pytest.raises(TerminalStateError):
        DocumentStateService.approve_document(session, doc_id, Actor(3), None, storage, FakeCompositor())

    transition = DocumentStateService.resubmit_document(session, doc_id, Actor(1))
    doc = session.get(Document, doc_id)
    assert (transition.next_order, doc.status) == (1, DocumentStatus.DRAFT)
    assert DocumentService.list_positions(doc) == []
    assert all(s.signed_at is None for s in doc.signers)


def test_acciones_permitidas(session, storage, users):
    doc_id = prepared_document(session, storage)
    doc = session.get(Document, doc_id)
    assert DocumentStateService.get_allowed_actions(doc, Actor(1)) == ["submit"]
    DocumentStateService.submit_document(session, doc_id, Actor(1), storage)
    doc = session.get(Document, doc_id)
    assert DocumentStateService.get_allowed_actions(doc, Actor(2)) == ["approve", "reject"]
    assert DocumentStateService.get_allowed_actions(doc, Actor(3)) == []


def test_limpieza_reintenta_archivos_pendientes(session, storage, users, monkeypatch):
    path = "documents/1/viejo.pdf"
    storage.upload(b"%PDF viejo", path)
    session.add(SupersededFile(document_id=1, path=path))
    session.commit()

    real_remove = storage.remove

    def failing_remove(p):
        raise PermissionError("locked")

    monkeypatch.setattr(storage, "remove", failing_remove)
    assert remove_superseded_files(session, storage) == 0
    pending = session.query(SupersededFile).one()
    assert pending.attempts == 1
    assert pending.last_error == "locked"

    monkeypatch.setattr(storage, "remove", real_remove)
    assert remove_superseded_files(session, storage) == 1
    assert not storage.exists(path)
    assert session.query(SupersededFile).count() == 0


def test_posicion_del_turno_en_curso_no_se_puede_quitar(session, storage, users):
    doc_id = submitted_document(session, storage)
    with pytest.raises(PositionLockedError):
        DocumentService.remove_position(session, doc_id, Actor(1), 2)
    with pytest.raises(PositionLockedError):
        DocumentService.place_position(session, doc_id, Actor(1), 2, 1, 300, 300, storage)

    compositor = FakeCompositor()
    DocumentStateService.approve_document(session, doc_id, Actor(2), "ok", storage, compositor)
    assert len(compositor.calls) == 1
    assert session.query(SignatureRecord).count() == 1


def test_aprobar_sin_posicion_no_avanza(session, storage, users):
    # el subdirector entra a la cadena ya enviada y nadie le coloca la firma
    doc_id = submitted_document(session, storage, [SIGNERS[0], SIGNERS[2]])
    DocumentService.update_signers(session, doc_id, Actor(1), SIGNERS)
    compositor = FakeCompositor()
    DocumentStateService.approve_document(session, doc_id, Actor(2), None, storage, compositor)
    assert session.get(Document, doc_id).current_signer_order == 3

    with pytest.raises(MissingPositionError):
        DocumentStateService.approve_document(session, doc_id, Actor(3), "ok", storage, compositor)

    doc = session.get(Document, doc_id)
    assert (doc.current_signer_order, doc.version) == (3, 3)
    assert len(compositor.calls) == 1
    assert [r.order for r in doc.signatures] == [2]


def test_firmantes_de_un_documento_cerrado_no_cambian(session, storage, users):
    doc_id = submitted_document(session, storage, [{"order": 4, "role": "director", "user_id": 4}])
    DocumentStateService.approve_document(session, doc_id, Actor(4), None, storage, FakeCompositor())

    with pytest.raises(TerminalStateError):
        DocumentService.update_signers(session, doc_id, Actor(1), [{"order": 2, "role": "assistant", "user_id": 2}])
    doc = session.get(Document, doc_id)
    assert [s.order for s in doc.signers] == [1, 4]


def test_no_se_agregan_firmantes_en_ordenes_ya_alcanzados(session, storage, users):
    doc_id = submitted_document(session, storage, [SIGNERS[1], SIGNERS[2]])
    assert session.get(Document, doc_id).current_signer_order == 3

    with pytest.raises(PositionLockedError):
        DocumentService.update_signers(session, doc_id, Actor(1), SIGNERS)
    doc = session.get(Document, doc_id)
    assert [s.order for s in doc.signers] == [1, 3, 4]


def test_envio_estampa_autor_y_secretaria(session, storage, users):
    create_dummy_user(session, 5, UserRole.CLERK, storage=storage)
    doc_id = prepared_document(session, storage)
    DocumentService.update_signers(session, doc_id, Actor(1), SIGNERS, clerk_id=5)
    DocumentService.place_position(session, doc_id, Actor(1), 1, 1, 50, 50, storage)
    clerk_position = DocumentService.place_position(
        session, doc_id, Actor(5), 1, 1, 80, 50, storage, role=SignerRole.CLERK
    )
    assert clerk_position.user_id == 5

    compositor = FakeCompositor()
    DocumentStateService.submit_document(session, doc_id, Actor(1), storage, compositor)

    assert len(compositor.calls) == 2
    assert [(b.x, b.y) for call in compositor.calls for b in call] == [(50, 50), (80, 50)]
    doc = session.get(Document, doc_id)
    assert doc.current_signer_order == 2
    assert sorted(r.user_id for r in doc.signatures) == [1, 5]
    assert all(s.signed_at is not None for s in doc.signers if s.order == 1)
    assert DocumentService.download_document(session, doc_id, storage) == storage.download(doc.file_path)


def test_acciones_permitidas_no_modifican_el_documento(session, storage, users):
    doc_id = submitted_document(session, storage)
    DocumentStateService.reject_document(session, doc_id, Actor(2), "Falta anexo")
    doc = session.get(Document, doc_id)
    positions_before = DocumentService.list_positions(doc)

    assert DocumentStateService.get_allowed_actions(doc, Actor(1)) == ["resubmit"]
    assert DocumentStateService.get_allowed_actions(doc, Actor(2)) == []
    assert DocumentService.list_positions(doc) == positions_before
    assert doc.current_signer_order == 0
