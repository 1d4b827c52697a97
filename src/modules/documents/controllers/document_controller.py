from typing import List, Optional

from fastapi import APIRouter, UploadFile, File, Form, Depends, Query, Response
from sqlalchemy.orm import Session
from config import get_settings
from database import get_db
from modules.auth.controllers.auth_controller import get_current_user
from modules.auth.dependencies import get_actor, require_permission
from modules.documents.approval.errors import FastDocError
from modules.documents.approval.roster import SignerRole
from modules.documents.approval.workflow import Actor
from modules.documents.controllers.errors import http_error
from modules.documents.models.document import DocumentKind
from modules.documents.models.user import User
from modules.documents.schemas.document_schemas import (
    DocumentResponse, PositionRequest, PositionResponse, SignerResponse, SignersUpdateRequest
)
from modules.documents.services.document_service import DocumentService
from modules.documents.services.document_state_service import DocumentStateService
from modules.documents.services.storage import LocalFileStorage, get_storage

router = APIRouter(
    tags=["documents"]
)

@router.post("/upload")
async def upload_document(
    file: UploadFile = File(...),
    subject: Optional[str] = Form(None),
    doc_number: Optional[str] = Form(None),
    kind: DocumentKind = Form(DocumentKind.MEMO),
    is_report_memo: bool = Form(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("upload")),
    storage: LocalFileStorage = Depends(get_storage)
):
    contents = await file.read()
    try:
        doc = DocumentService.upload_document(
            db, current_user.id, contents, file.filename, file.content_type, storage,
            subject=subject, kind=kind, doc_number=doc_number, is_report_memo=is_report_memo,
            max_file_size=get_settings().max_file_size
        )
    except FastDocError as e:
        raise http_error(e)
    return {"message": "Documento subido correctamente", "document_id": doc.id}

@router.get("/", response_model=List[DocumentResponse])
def list_documents(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return DocumentService.get_documents_by_user(db, current_user.id)

@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(document_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    try:
        return DocumentService.get_document(db, document_id)
    except FastDocError as e:
        raise http_error(e)

@router.get("/{document_id}/actions", response_model=List[str])
def allowed_actions(document_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    try:
        document = DocumentService.get_document(db, document_id)
    except FastDocError as e:
        raise http_error(e)
    return DocumentStateService.get_allowed_actions(document, actor)

@router.put("/{document_id}/signers", response_model=List[SignerResponse])
def update_signers(
    document_id: int,
    payload: SignersUpdateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    try:
        document = DocumentService.update_signers(
            db, document_id, actor,
            [s.model_dump() for s in payload.signers],
            clerk_id=payload.clerk_id
        )
    except FastDocError as e:
        raise http_error(e)
    return document.signers

@router.get("/{document_id}/pending-signers", response_model=List[PositionResponse])
def pending_signers(document_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Firmantes que aún deben firmar (sin autor ni secretaría)"""
    try:
        document = DocumentService.get_document(db, document_id)
    except FastDocError as e:
        raise http_error(e)
    return [
        PositionResponse(order=e.order, role=e.role.value, user_id=e.user_id,
                         page=p.page, x=p.x, y=p.y)
        for e in DocumentService.pending_signers(document)
        for p in e.positions
    ]

@router.get("/{document_id}/positions", response_model=List[PositionResponse])
def list_positions(
    document_id: int,
    rendered_width: Optional[float] = Query(None, gt=0),
    rendered_height: Optional[float] = Query(None, gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    try:
        document = DocumentService.get_document(db, document_id)
    except FastDocError as e:
        raise http_error(e)
    return DocumentService.list_positions(document, rendered_width, rendered_height)

@router.post("/{document_id}/positions", response_model=PositionResponse, status_code=201)
def place_position(
    document_id: int,
    payload: PositionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    storage: LocalFileStorage = Depends(get_storage)
):
    try:
        if payload.x is not None:
            position = DocumentService.place_position(
                db, document_id, actor, payload.order, payload.page, payload.x, payload.y, storage, payload.role
            )
        else:
            position = DocumentService.place_position_from_click(
                db, document_id, actor, payload.order, payload.page,
                payload.dom_x, payload.dom_y, payload.rendered_width, payload.rendered_height, storage,
                payload.role
            )
        document = DocumentService.get_document(db, document_id)
    except FastDocError as e:
        raise http_error(e)
    role = payload.role.value if payload.role else next(
        r.role.value for r in document.signers if r.order == payload.order and r.user_id == position.user_id
    )
    return PositionResponse(order=payload.order, role=role, user_id=position.user_id,
                            page=position.page, x=position.x, y=position.y)

@router.delete("/{document_id}/positions/{order}")
def remove_position(
    document_id: int,
    order: int,
    page: Optional[int] = Query(None, ge=1),
    role: Optional[SignerRole] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    try:
        removed = DocumentService.remove_position(db, document_id, actor, order, page, role)
    except FastDocError as e:
        raise http_error(e)
    return {"removed": removed}

@router.get("/{document_id}/download")
def download_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_storage)
):
    """
    Devuelve el PDF si el hash coincide con la última firma.
    """
    try:
        data = DocumentService.download_document(db, document_id, storage)
    except FastDocError as e:
        raise http_error(e)
    return Response(content=data, media_type="application/pdf")
