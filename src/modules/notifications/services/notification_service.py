# modules/notifications/services/notification_service.py
import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from modules.notifications.models.notification import Notification
from modules.notifications.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)

DOCUMENT_ADVANCED = "document.advanced"
DOCUMENT_REJECTED = "document.rejected"
ASSIGNMENT_COMPLETED = "assignment.completed"

# Reenvío a la capa de tiempo real; se llama con (evento, payload)
_listeners: List[Callable[[str, dict], None]] = []


def subscribe(listener: Callable[[str, dict], None]) -> None:
    _listeners.append(listener)


def unsubscribe(listener: Callable[[str, dict], None]) -> None:
    if listener in _listeners:
        _listeners.remove(listener)


class NotificationTemplate:
    event = ""

    def __init__(self, title: str, message: str, document_id: Optional[int] = None):
        self.title = title
        self.message = message
        self.document_id = document_id

    def to_dict(self):
        return {
            'event': self.event,
            'title': self.title,
            'message': self.message,
            'document_id': self.document_id,
        }

class DocumentAdvancedNotification(NotificationTemplate):
    event = DOCUMENT_ADVANCED

    def __init__(self, document_id: int, subject: str, next_order: int, completed: bool):
        if completed:
            title = "Document approved"
            message = f"The document '{subject}' has been fully signed."
        else:
            title = "Document waiting for your signature"
            message = f"The document '{subject}' is waiting at signing step {next_order}."
        super().__init__(title, message, document_id)

class DocumentRejectedNotification(NotificationTemplate):
    event = DOCUMENT_REJECTED

    def __init__(self, document_id: int, subject: str, rejected_by: str, reason: str):
        title = "Document returned"
        message = f"The document '{subject}' was returned by {rejected_by}: {reason}"
        super().__init__(title, message, document_id)

class AssignmentCompletedNotification(NotificationTemplate):
    event = ASSIGNMENT_COMPLETED

    def __init__(self, document_id: int, subject: str, completed_by: str):
        title = "Assignment completed"
        message = f"{completed_by} completed the assignment for '{subject}'."
        super().__init__(title, message, document_id)

class NotificationService:
    def __init__(self, repository: NotificationRepository):
        self.notification_repository = repository

    def publish(self, template: NotificationTemplate, user_ids: Iterable[int]) -> List[Notification]:
        """
        Guarda una notificación por destinatario y reenvía el evento.
        La entrega es de mejor esfuerzo: los fallos se registran en el log y no se propagan.
        """
        recipients = sorted(set(user_ids))
        notifications = [
            Notification(
                user_id=user_id,
                event=template.event,
                title=template.title,
                message=template.message,
                document_id=template.document_id,
            )
            for user_id in recipients
        ]
        try:
            self.notification_repository.save_all(notifications)
        except SQLAlchemyError:
            logger.exception("Could not store %s notifications", template.event)
            self.notification_repository.db.rollback()
            return []

        payload = dict(template.to_dict(), recipients=recipients)
        for listener in list(_listeners):
            try:
                listener(template.event, payload)
            except Exception:
                logger.exception("Realtime listener failed for %s", template.event)
        return notifications

    def notify_document_advanced(self, document_id: int, subject: str, next_order: int,
                                 completed: bool, user_ids: Iterable[int]) -> List[Notification]:
        template = DocumentAdvancedNotification(document_id, subject, next_order, completed)
        return self.publish(template, user_ids)

    def notify_document_rejected(self, document_id: int, subject: str, rejected_by: str,
                                 reason: str, user_ids: Iterable[int]) -> List[Notification]:
        template = DocumentRejectedNotification(document_id, subject, rejected_by, reason)
        return self.publish(template, user_ids)

    def notify_assignment_completed(self, document_id: int, subject: str, completed_by: str,
                                    user_ids: Iterable[int]) -> List[Notification]:
        template = AssignmentCompletedNotification(document_id, subject, completed_by)
        return self.publish(template, user_ids)

    def get_notifications(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        return self.notification_repository.find_by_user_id(user_id, unread_only)

    def mark_as_read(self, user_id: int, notification_id: int) -> Optional[Notification]:
        return self.notification_repository.mark_read(user_id, notification_id)

    def unread_count(self, user_id: int) -> int:
        return self.notification_repository.count_unread(user_id)
