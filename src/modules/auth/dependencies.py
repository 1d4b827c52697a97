from fastapi import Depends, HTTPException, status
from modules.documents.approval.workflow import Actor
from modules.documents.models.user import User, UserRole
from modules.documents.services.permission import can_perform_action
from modules.auth.controllers.auth_controller import get_current_user

def require_permission(action: str):
    def dependency(current_user: User = Depends(get_current_user)):
        if not can_perform_action(current_user.role, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User with role '{current_user.role.value}' cannot perform '{action}'"
            )
        return current_user
    return dependency

def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, name=user.name, is_admin=user.role == UserRole.ADMIN)

def get_actor(current_user: User = Depends(get_current_user)) -> Actor:
    """Identidad que actúa, se pasa explícitamente al núcleo de aprobación"""
    return actor_for(current_user)
