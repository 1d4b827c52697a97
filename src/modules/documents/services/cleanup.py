import logging
from typing import Optional

from sqlalchemy.orm import Session

from modules.documents.models.superseded_file import SupersededFile
from modules.documents.services.storage import LocalFileStorage

logger = logging.getLogger(__name__)


def remove_superseded_files(session: Session, storage: LocalFileStorage,
                            document_id: Optional[int] = None) -> int:
    """Borra los PDF reemplazados por una versión firmada; los fallos quedan para la próxima pasada"""
    query = session.query(SupersededFile)
    if document_id is not None:
        query = query.filter(SupersededFile.document_id == document_id)

    removed = 0
    for pending in query.order_by(SupersededFile.id).all():
        try:
            storage.remove(pending.path)
        except OSError as e:
            pending.attempts += 1
            pending.last_error = str(e)
            logger.warning("Could not delete superseded file %s: %s", pending.path, e)
            continue
        session.delete(pending)
        removed += 1

    session.commit()
    return removed
