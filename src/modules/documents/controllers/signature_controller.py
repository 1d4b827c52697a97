# src/modules/documents/controllers/signature_controller.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db
from modules.auth.dependencies import get_actor
from modules.documents.approval.errors import FastDocError
from modules.documents.approval.workflow import Actor
from modules.documents.controllers.errors import http_error
from modules.documents.schemas.document_schemas import (
    ActionRequest, ApproveRequest, RejectRequest, RejectionResponse, TransitionResponse
)
from modules.documents.services.compositor import SignatureCompositor, get_compositor
from modules.documents.services.document_state_service import DocumentStateService
from modules.documents.services.storage import LocalFileStorage, get_storage

router = APIRouter(
    tags=["documents"]
)

@router.post("/{document_id}/submit", response_model=TransitionResponse)
def submit_document(
    document_id: int,
    payload: Optional[ActionRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    storage: LocalFileStorage = Depends(get_storage),
    compositor: SignatureCompositor = Depends(get_compositor)
):
    """
    Envía el borrador al primer firmante de la cadena.
    """
    try:
        transition = DocumentStateService.submit_document(
            db, document_id, actor, storage, compositor,
            expected_version=payload.expected_version if payload else None
        )
    except FastDocError as e:
        raise http_error(e)
    return TransitionResponse(document_id=document_id, current_signer_order=transition.next_order,
                              status=transition.next_status)

@router.post("/{document_id}/approve", response_model=TransitionResponse)
def approve_document(
    document_id: int,
    payload: ApproveRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    storage: LocalFileStorage = Depends(get_storage),
    compositor: SignatureCompositor = Depends(get_compositor)
):
    """
    Firma el documento en el turno actual y lo pasa al siguiente firmante.
    """
    try:
        transition = DocumentStateService.approve_document(
            db, document_id, actor, payload.comment, storage, compositor,
            expected_version=payload.expected_version
        )
    except FastDocError as e:
        raise http_error(e)
    return TransitionResponse(document_id=document_id, current_signer_order=transition.next_order,
                              status=transition.next_status)

@router.post("/{document_id}/reject", response_model=RejectionResponse)
def reject_document(
    document_id: int,
    payload: RejectRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    """
    Devuelve el documento a su autor con el motivo indicado.
    """
    try:
        return DocumentStateService.reject_document(
            db, document_id, actor, payload.reason, expected_version=payload.expected_version
        )
    except FastDocError as e:
        raise http_error(e)

@router.post("/{document_id}/resubmit", response_model=TransitionResponse)
def resubmit_document(
    document_id: int,
    payload: Optional[ActionRequest] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    try:
        transition = DocumentStateService.resubmit_document(
            db, document_id, actor, expected_version=payload.expected_version if payload else None
        )
    except FastDocError as e:
        raise http_error(e)
    return TransitionResponse(document_id=document_id, current_signer_order=transition.next_order,
                              status=transition.next_status)
