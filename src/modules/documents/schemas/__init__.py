from .document_schemas import (
    ActionRequest, ApproveRequest, DocumentResponse, PositionRequest, PositionResponse, RejectionResponse,
    RejectRequest, SignerResponse, SignersUpdateRequest, TransitionResponse
)

__all__ = [
    'ActionRequest', 'ApproveRequest', 'DocumentResponse', 'PositionRequest', 'PositionResponse',  'RejectionResponse',
    'RejectRequest', 'SignerResponse', 'SignersUpdateRequest', 'TransitionResponse'
]
