from .task_schemas import (
    AcknowledgeRequest, CompleteRequest, ReadyDocumentResponse, ReportLinkResponse,
    TaskAssignmentResponse, TaskListResponse, TeamCreateRequest, TeamResponse
)

__all__ = [
    'AcknowledgeRequest', 'CompleteRequest', 'ReadyDocumentResponse', 'ReportLinkResponse',
    'TaskAssignmentResponse', 'TaskListResponse', 'TeamCreateRequest', 'TeamResponse'
]
