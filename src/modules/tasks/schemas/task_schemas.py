from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from modules.tasks.team import AggregateStatus, TaskStatus


class TeamCreateRequest(BaseModel):
    leader_id: int
    member_ids: List[int] = []
    reporter_ids: Optional[List[int]] = None
    note: Optional[str] = Field(None, max_length=2000)


class AcknowledgeRequest(BaseModel):
    selected_reporter_ids: Optional[List[int]] = None


class CompleteRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=2000)
    report_document_id: Optional[int] = None


class TaskAssignmentResponse(BaseModel):
    id: int
    document_id: int
    assigned_by: int
    assigned_to: int
    is_team_leader: bool
    is_reporter: bool
    status: TaskStatus
    note: Optional[str] = None
    completion_note: Optional[str] = None
    completed_at: Optional[datetime] = None
    report_document_id: Optional[int] = None
    assigned_at: datetime

    model_config = {"from_attributes": True}


class TeamResponse(BaseModel):
    document_id: int
    status: AggregateStatus
    members: List[TaskAssignmentResponse]


class TaskListResponse(BaseModel):
    items: List[TaskAssignmentResponse]
    total: int


class ReadyDocumentResponse(BaseModel):
    id: int
    subject: str
    doc_number: Optional[str] = None
    signed_date: Optional[datetime] = None
    is_assigned: bool

    model_config = {"from_attributes": True}


class ReportLinkResponse(BaseModel):
    original_document_id: int
    report_document_id: int
    created_at: datetime

    model_config = {"from_attributes": True}
