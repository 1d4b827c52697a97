"""
Modelo de equipo de una asignación: un líder, miembros y los reporteros
que deben entregar un informe antes de que la tarea cuente como hecha.

    Pending -> InProgress -> Completed
    Pending | InProgress -> Cancelled

El estado agregado se deriva de los participantes y nunca se guarda.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from modules.documents.approval.errors import (
    InvalidTransitionError,
    ReportRequiredError,
    TeamCompositionError,
)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AggregateStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


OPEN_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


@dataclass
class Participant:
    assignment_id: Optional[int]
    user_id: int
    is_team_leader: bool = False
    is_reporter: bool = False
    status: TaskStatus = TaskStatus.PENDING
    completion_note: Optional[str] = None
    completed_at: Optional[datetime] = None
    report_document_id: Optional[int] = None


class Team:

    def __init__(self, participants: Iterable[Participant]):
        self.participants: List[Participant] = list(participants)
        self._check_composition()

    @classmethod
    def create(cls, leader_id: int, member_ids: Iterable[int] = (),
               reporter_ids: Optional[Iterable[int]] = None) -> "Team":
        """Nuevo equipo; si no se indica reportero, el líder lo es"""
        members = [m for m in dict.fromkeys(member_ids) if m != leader_id]
        reporters = set(reporter_ids) if reporter_ids else {leader_id}
        everyone = [leader_id] + members
        unknown = reporters - set(everyone)
        if unknown:
            raise TeamCompositionError(f"Reporters {sorted(unknown)} are not part of the team")
        return cls(
            Participant(None, user_id, is_team_leader=user_id == leader_id, is_reporter=user_id in reporters)
            for user_id in everyone
        )

    def _check_composition(self) -> None:
        leaders = [p for p in self.participants if p.is_team_leader]
        if len(leaders) != 1:
            raise TeamCompositionError(f"A team needs exactly one leader, found {len(leaders)}")
        if not any(p.is_reporter for p in self.participants):
            raise TeamCompositionError("A team needs at least one reporter")
        user_ids = [p.user_id for p in self.participants]
        if len(user_ids) != len(set(user_ids)):
            raise TeamCompositionError("A user can only appear once in a team")

    @property
    def leader(self) -> Participant:
        return next(p for p in self.participants if p.is_team_leader)

    def reporters(self) -> List[Participant]:
        return [p for p in self.participants if p.is_reporter]

    def get(self, assignment_id: int) -> Participant:
        for participant in self.participants:
            if participant.assignment_id == assignment_id:
                return participant
        raise InvalidTransitionError(f"Assignment {assignment_id} is not part of this team")

    def acknowledge(self, assignment_id: int, selected_reporter_ids: Optional[Iterable[int]] = None) -> List[Participant]:
        """
        Acepta la tarea. El líder debe elegir a los reporteros entre los
        miembros del equipo; ellos pasan a en curso junto con él.
        Devuelve los participantes que cambiaron.
        """
        participant = self.get(assignment_id)
        if participant.status != TaskStatus.PENDING:
            raise InvalidTransitionError(
                f"Assignment {assignment_id} is {participant.status.value}, only pending tasks can be acknowledged"
            )
        if not participant.is_team_leader:
            participant.status = TaskStatus.IN_PROGRESS
            return [participant]

        selected = set(selected_reporter_ids or ())
        if not selected:
            raise TeamCompositionError("The team leader must choose at least one reporter")
        by_user = {p.user_id: p for p in self.participants}
        unknown = selected - set(by_user)
        if unknown:
            raise TeamCompositionError(f"Reporters {sorted(unknown)} are not part of the team")
        if any(by_user[u].status == TaskStatus.CANCELLED for u in selected):
            raise TeamCompositionError("A cancelled participant cannot be a reporter")
        # Quien ya terminó sin informe no puede cubrir el informe del equipo
        finished = sorted(
            u for u in selected
            if by_user[u].status == TaskStatus.COMPLETED and by_user[u].report_document_id is None
        )
        if finished:
            raise TeamCompositionError(f"Participants {finished} completed without a report and cannot be reporters")

        changed = []
        for p in self.participants:
            p.is_reporter = p.user_id in selected
            if (p.is_reporter or p is participant) and p.status == TaskStatus.PENDING:
                p.status = TaskStatus.IN_PROGRESS
                changed.append(p)
        return changed

    def complete(self, assignment_id: int, note: Optional[str], report_document_id: Optional[int] = None,
                 now: Optional[datetime] = None) -> Participant:
        participant = self.get(assignment_id)
        if participant.status != TaskStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Assignment {assignment_id} is {participant.status.value}, only tasks in progress can be completed"
            )
        if participant.is_reporter and report_document_id is None:
            raise ReportRequiredError("A reporter has to attach a report document to complete the task")

        participant.status = TaskStatus.COMPLETED
        participant.completion_note = note
        participant.completed_at = now or datetime.utcnow()
        participant.report_document_id = report_document_id
        return participant

    def cancel(self, assignment_id: int) -> Participant:
        participant = self.get(assignment_id)
        if participant.status not in OPEN_STATUSES:
            raise InvalidTransitionError(f"Assignment {assignment_id} is already {participant.status.value}")
        participant.status = TaskStatus.CANCELLED
        return participant

    def aggregate_status(self) -> AggregateStatus:
        statuses = [p.status for p in self.participants]
        reporters = self.reporters()
        if reporters and all(
            p.status == TaskStatus.COMPLETED and p.report_document_id is not None for p in reporters
        ):
            return AggregateStatus.DONE
        if TaskStatus.IN_PROGRESS in statuses:
            return AggregateStatus.IN_PROGRESS
        if all(s == TaskStatus.PENDING for s in statuses):
            return AggregateStatus.NOT_STARTED
        if all(s == TaskStatus.CANCELLED for s in statuses):
            return AggregateStatus.CANCELLED
        return AggregateStatus.IN_PROGRESS
