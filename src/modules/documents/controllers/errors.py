import logging

from fastapi import HTTPException, status

from modules.documents.approval.errors import (
    AssignmentError,
    BoundaryError,
    CompositionTimeoutError,
    DocumentNotFoundError,
    FastDocError,
    RosterError,
    SignatureImageMissingError,
    WorkflowError,
)

logger = logging.getLogger(__name__)


def http_error(error: FastDocError) -> HTTPException:
    """Traduce un error de dominio a la respuesta HTTP que ve el usuario"""
    if isinstance(error, DocumentNotFoundError):
        return HTTPException(status.HTTP_404_NOT_FOUND, str(error))
    if isinstance(error, SignatureImageMissingError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, "Upload your signature image before signing")
    if isinstance(error, (RosterError, AssignmentError)):
        return HTTPException(status.HTTP_400_BAD_REQUEST, str(error))
    if isinstance(error, WorkflowError):
        return HTTPException(status.HTTP_409_CONFLICT, str(error))
    if isinstance(error, BoundaryError):
        # La causa puede traer diagnósticos internos: se registra y se responde genérico
        logger.error("External boundary failure: %r", error)
        code = status.HTTP_504_GATEWAY_TIMEOUT if isinstance(error, CompositionTimeoutError) else status.HTTP_502_BAD_GATEWAY
        return HTTPException(code, "The document could not be processed, please try again")
    logger.error("Unexpected domain error: %r", error)
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Unexpected error")
