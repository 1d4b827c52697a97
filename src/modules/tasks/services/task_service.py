import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from modules.documents.approval.errors import (
    AssignmentNotAvailableError,
    DocumentNotFoundError,
    NotYourTurnError,
    ReportRequiredError,
    TeamCompositionError,
)
from modules.documents.approval.roster import SignerOrder
from modules.documents.approval.workflow import Actor, DocumentStatus
from modules.documents.models.document import Document
from modules.documents.models.user import User
from modules.notifications.repositories.notification_repository import NotificationRepository
from modules.notifications.services.notification_service import NotificationService
from modules.tasks.models.task_assignment import ReportLink, TaskAssignment
from modules.tasks.team import OPEN_STATUSES, AggregateStatus, Participant, TaskStatus, Team

logger = logging.getLogger(__name__)


def _to_participant(row: TaskAssignment) -> Participant:
    return Participant(
        assignment_id=row.id,
        user_id=row.assigned_to,
        is_team_leader=row.is_team_leader,
        is_reporter=row.is_reporter,
        status=row.status,
        completion_note=row.completion_note,
        completed_at=row.completed_at,
        report_document_id=row.report_document_id,
    )


def _apply(row: TaskAssignment, participant: Participant) -> None:
    row.is_reporter = participant.is_reporter
    row.status = participant.status
    row.completion_note = participant.completion_note
    row.completed_at = participant.completed_at
    row.report_document_id = participant.report_document_id


class TaskService:
    """
    Asignación de tareas sobre documentos ya firmados por completo.
    Las reglas del equipo viven en ``Team``; aquí solo se cargan y guardan filas.
    """

    @staticmethod
    def _is_completed(document: Document) -> bool:
        return (document.current_signer_order == SignerOrder.COMPLETED
                and document.status == DocumentStatus.APPROVED)

    @staticmethod
    def list_ready_documents(session: Session) -> List[Document]:
        """Documentos aprobados, asignados o no"""
        return (
            session.query(Document)
            .filter(
                Document.current_signer_order == SignerOrder.COMPLETED,
                Document.status == DocumentStatus.APPROVED,
            )
            .order_by(Document.is_assigned, Document.signed_date.desc())
            .all()
        )

    @staticmethod
    def _team_rows(session: Session, document_id: int) -> List[TaskAssignment]:
        return (
            session.query(TaskAssignment)
            .filter(TaskAssignment.document_id == document_id)
            .order_by(TaskAssignment.id)
            .all()
        )

    @staticmethod
    def _load_team(session: Session, assignment_id: int) -> Tuple[TaskAssignment, List[TaskAssignment], Team]:
        row = session.get(TaskAssignment, assignment_id)
        if row is None:
            raise AssignmentNotAvailableError(f"Assignment {assignment_id} not found")
        rows = TaskService._team_rows(session, row.document_id)
        return row, rows, Team(_to_participant(r) for r in rows)

    @staticmethod
    def _save(session: Session, rows: List[TaskAssignment], team: Team) -> None:
        by_id = {p.assignment_id: p for p in team.participants}
        for row in rows:
            _apply(row, by_id[row.id])
        session.commit()

    @staticmethod
    def create_team(session: Session, document_id: int, assigned_by: int, leader_id: int,
                    member_ids: Iterable[int] = (), reporter_ids: Optional[Iterable[int]] = None,
                    note: Optional[str] = None) -> List[TaskAssignment]:
        document = session.get(Document, document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if not TaskService._is_completed(document):
            raise AssignmentNotAvailableError("Only fully signed documents can be assigned")
        if document.is_assigned or TaskService._team_rows(session, document_id):
            raise AssignmentNotAvailableError(f"Document {document_id} already has a team")

        team = Team.create(leader_id, member_ids, reporter_ids)
        for participant in team.participants:
            user = session.get(User, participant.user_id)
            if user is None or not user.is_active:
                raise TeamCompositionError(f"User {participant.user_id} cannot be assigned")

        rows = [
            TaskAssignment(
                document_id=document_id,
                assigned_by=assigned_by,
                assigned_to=p.user_id,
                is_team_leader=p.is_team_leader,
                is_reporter=p.is_reporter,
                status=p.status,
                note=note,
            )
            for p in team.participants
        ]
        session.add_all(rows)
        document.is_assigned = True
        session.commit()

        logger.info("Document %s assigned by user %s to a team of %d led by %s",
                    document_id, assigned_by, len(rows), leader_id)
        return rows

    @staticmethod
    def _check_owner(row: TaskAssignment, actor: Actor) -> None:
        if row.assigned_to != actor.user_id and not actor.is_admin:
            raise NotYourTurnError("This assignment belongs to another user")

    @staticmethod
    def acknowledge(session: Session, assignment_id: int, actor: Actor,
                    selected_reporter_ids: Optional[Iterable[int]] = None) -> List[TaskAssignment]:
        row, rows, team = TaskService._load_team(session, assignment_id)
        TaskService._check_owner(row, actor)
        changed = team.acknowledge(assignment_id, selected_reporter_ids)
        TaskService._save(session, rows, team)
        logger.info("Assignment %s acknowledged, %d participants now in progress", assignment_id, len(changed))
        return rows

    @staticmethod
    def complete(session: Session, assignment_id: int, actor: Actor, note: Optional[str],
                 report_document_id: Optional[int] = None) -> TaskAssignment:
        row, rows, team = TaskService._load_team(session, assignment_id)
        TaskService._check_owner(row, actor)

        if report_document_id is not None:
            report = session.get(Document, report_document_id)
            if report is None:
                raise DocumentNotFoundError(f"Document {report_document_id} not found")
            if not report.is_report_memo:
                raise ReportRequiredError(f"Document {report_document_id} is not a report memo")

        was_done = team.aggregate_status() == AggregateStatus.DONE
        team.complete(assignment_id, note, report_document_id)
        if report_document_id is not None:
            exists = (
                session.query(ReportLink)
                .filter_by(original_document_id=row.document_id, report_document_id=report_document_id)
                .first()
            )
            if exists is None:
                session.add(ReportLink(original_document_id=row.document_id, report_document_id=report_document_id))
        TaskService._save(session, rows, team)

        logger.info("Assignment %s completed by user %s", assignment_id, actor.user_id)
        done = team.aggregate_status() == AggregateStatus.DONE
        if done and not was_done:
            logger.info("Task of document %s is done", row.document_id)

        document = session.get(Document, row.document_id)
        recipients = {row.assigned_by, team.leader.user_id} - {actor.user_id}
        NotificationService(NotificationRepository(session)).notify_assignment_completed(
            row.document_id, document.subject, actor.name or str(actor.user_id), recipients
        )
        return row

    @staticmethod
    def cancel(session: Session, assignment_id: int, actor: Actor) -> TaskAssignment:
        row, rows, team = TaskService._load_team(session, assignment_id)
        if actor.user_id not in (row.assigned_by, team.leader.user_id) and not actor.is_admin:
            raise NotYourTurnError("Only whoever assigned the task or the team leader can cancel it")
        team.cancel(assignment_id)
        TaskService._save(session, rows, team)
        logger.info("Assignment %s cancelled by user %s", assignment_id, actor.user_id)
        return row

    @staticmethod
    def get_team(session: Session, document_id: int) -> Tuple[AggregateStatus, List[TaskAssignment]]:
        rows = TaskService._team_rows(session, document_id)
        if not rows:
            raise AssignmentNotAvailableError(f"Document {document_id} has no team")
        return Team(_to_participant(r) for r in rows).aggregate_status(), rows

    @staticmethod
    def get_user_tasks(session: Session, user_id: int, status: Optional[TaskStatus] = None,
                       limit: int = 50, offset: int = 0) -> Tuple[List[TaskAssignment], int]:
        query = session.query(TaskAssignment).filter(TaskAssignment.assigned_to == user_id)
        if status is not None:
            query = query.filter(TaskAssignment.status == status)
        total = query.count()
        items = query.order_by(TaskAssignment.assigned_at.desc(), TaskAssignment.id.desc()).offset(offset).limit(limit).all()
        return items, total

    @staticmethod
    def pending_count(session: Session, user_id: int) -> int:
        return (
            session.query(TaskAssignment)
            .filter(TaskAssignment.assigned_to == user_id, TaskAssignment.status.in_(OPEN_STATUSES))
            .count()
        )

    @staticmethod
    def report_links(session: Session, document_id: int) -> List[ReportLink]:
        return (
            session.query(ReportLink)
            .filter(ReportLink.original_document_id == document_id)
            .order_by(ReportLink.id)
            .all()
        )
