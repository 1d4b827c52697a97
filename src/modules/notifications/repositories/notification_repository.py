from typing import List, Optional
from sqlalchemy.orm import Session

from modules.notifications.models.notification import Notification

class NotificationRepository:
    """Bandeja de notificaciones; todas las consultas van acotadas al destinatario"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def save_all(self, notifications: List[Notification]) -> List[Notification]:
        self.db.add_all(notifications)
        self.db.commit()
        return notifications

    def _inbox(self, user_id: int, unread_only: bool = False):
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query

    def find_by_user_id(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        return (
            self._inbox(user_id, unread_only)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .all()
        )

    def count_unread(self, user_id: int) -> int:
        return self._inbox(user_id, unread_only=True).count()

    def mark_read(self, user_id: int, notification_id: int) -> Optional[Notification]:
        notif = self._inbox(user_id).filter(Notification.id == notification_id).one_or_none()
        if notif is None:
            return None
        notif.read = True
        self.db.commit()
        self.db.refresh(notif)
        return notif
