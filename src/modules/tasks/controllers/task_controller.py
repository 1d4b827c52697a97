# modules/tasks/controllers/task_controller.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from modules.auth.controllers.auth_controller import get_current_user
from modules.auth.dependencies import get_actor, require_permission
from modules.documents.approval.errors import FastDocError
from modules.documents.approval.workflow import Actor
from modules.documents.controllers.errors import http_error
from modules.documents.models.user import User
from modules.tasks.schemas.task_schemas import (
    AcknowledgeRequest, CompleteRequest, ReadyDocumentResponse, ReportLinkResponse,
    TaskAssignmentResponse, TaskListResponse, TeamCreateRequest, TeamResponse
)
from modules.tasks.services.task_service import TaskService
from modules.tasks.team import TaskStatus

router = APIRouter()


@router.get("/ready-documents", response_model=List[ReadyDocumentResponse],
            summary="Documentos aprobados listos para asignar")
def ready_documents(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("assign"))
):
    return TaskService.list_ready_documents(db)


@router.post("/documents/{document_id}/team", response_model=TeamResponse,
             status_code=status.HTTP_201_CREATED)
def create_team(
    document_id: int,
    payload: TeamCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("assign"))
):
    try:
        TaskService.create_team(
            db, document_id, current_user.id, payload.leader_id,
            payload.member_ids, payload.reporter_ids, payload.note
        )
        aggregate, rows = TaskService.get_team(db, document_id)
    except FastDocError as e:
        raise http_error(e)
    return TeamResponse(document_id=document_id, status=aggregate, members=rows)


@router.get("/documents/{document_id}/team", response_model=TeamResponse)
def get_team(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    try:
        aggregate, rows = TaskService.get_team(db, document_id)
    except FastDocError as e:
        raise http_error(e)
    return TeamResponse(document_id=document_id, status=aggregate, members=rows)


@router.get("/documents/{document_id}/reports", response_model=List[ReportLinkResponse])
def report_links(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TaskService.report_links(db, document_id)


@router.get("/mine", response_model=TaskListResponse, summary="Mis tareas")
def my_tasks(
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    items, total = TaskService.get_user_tasks(db, current_user.id, task_status, limit, offset)
    return TaskListResponse(items=items, total=total)


@router.get("/mine/pending-count")
def pending_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"pending": TaskService.pending_count(db, current_user.id)}


@router.post("/{assignment_id}/acknowledge", response_model=List[TaskAssignmentResponse])
def acknowledge(
    assignment_id: int,
    payload: AcknowledgeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    try:
        return TaskService.acknowledge(db, assignment_id, actor, payload.selected_reporter_ids)
    except FastDocError as e:
        raise http_error(e)


@router.post("/{assignment_id}/complete", response_model=TaskAssignmentResponse)
def complete(
    assignment_id: int,
    payload: CompleteRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    try:
        return TaskService.complete(db, assignment_id, actor, payload.note, payload.report_document_id)
    except FastDocError as e:
        raise http_error(e)


@router.post("/{assignment_id}/cancel", response_model=TaskAssignmentResponse)
def cancel(
    assignment_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    try:
        return TaskService.cancel(db, assignment_id, actor)
    except FastDocError as e:
        raise http_error(e)
