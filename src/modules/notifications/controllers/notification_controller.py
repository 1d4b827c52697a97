from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from modules.auth.controllers.auth_controller import get_current_user
from modules.documents.models.user import User
from modules.notifications.repositories.notification_repository import NotificationRepository
from modules.notifications.services.notification_service import NotificationService
from modules.notifications.models.schemas import NotificationResponse, UnreadCountResponse

router = APIRouter()


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(NotificationRepository(db))


@router.get("/", response_model=List[NotificationResponse], summary="Bandeja del usuario actual")
def list_notifications(
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return service.get_notifications(current_user.id, unread_only)


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return UnreadCountResponse(unread=service.unread_count(current_user.id))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    # Solo el destinatario puede marcarla; para el resto no existe
    notif = service.mark_as_read(current_user.id, notification_id)
    if notif is None:
        raise HTTPException(404, "Notificación no encontrada")
    return notif
