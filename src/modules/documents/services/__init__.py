from .cleanup import remove_superseded_files
from .document_service import DocumentService
from .document_state_service import DocumentStateService

__all__ = ['remove_superseded_files', 'DocumentService', 'DocumentStateService']
