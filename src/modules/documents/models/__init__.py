from .user import User, UserRole
from .document import Document, DocumentKind, DocumentStatus
from .signer import SignerEntry, SignaturePlacement
from .signature import SignatureRecord
from .rejection import Rejection
from .superseded_file import SupersededFile

__all__ = [
    'User', 'UserRole', 'Document', 'DocumentKind', 'DocumentStatus',
    'SignerEntry', 'SignaturePlacement', 'SignatureRecord', 'Rejection', 'SupersededFile',
]
