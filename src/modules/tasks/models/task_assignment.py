from sqlalchemy import Boolean, Column, Integer, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base
from modules.tasks.team import TaskStatus

class TaskAssignment(Base):
    __tablename__ = 'task_assignments'

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey('documents.id'), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    assigned_to = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    is_team_leader = Column(Boolean, nullable=False, default=False)
    is_reporter = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(TaskStatus), nullable=False, default=TaskStatus.PENDING)

    note = Column(String, nullable=True)
    completion_note = Column(String, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    report_document_id = Column(Integer, ForeignKey('documents.id'), nullable=True)

    assigned_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    document = relationship("Document", foreign_keys=[document_id])
    assignee = relationship("User", foreign_keys=[assigned_to])

class ReportLink(Base):
    """Relación explícita entre un documento y su memo de informe"""
    __tablename__ = 'report_links'
    __table_args__ = (UniqueConstraint('original_document_id', 'report_document_id'),)

    id = Column(Integer, primary_key=True)
    original_document_id = Column(Integer, ForeignKey('documents.id'), nullable=False, index=True)
    report_document_id = Column(Integer, ForeignKey('documents.id'), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
