import time
from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from database import get_db
from modules.auth.services.auth_service import AuthService
from modules.auth.schemas.auth_schemas import (
    LoginRequest, TokenResponse, UserCreate, UserResponse,
    UserUpdate, UserListResponse
)
from modules.documents.approval.errors import UploadError
from modules.documents.models.user import User, UserRole
from modules.documents.services.storage import LocalFileStorage, get_storage

router = APIRouter(prefix="/auth", tags=["authentication"])
security = HTTPBearer()

ALLOWED_SIGNATURE_TYPES = {"image/png": ".png", "image/jpeg": ".jpg"}
MAX_SIGNATURE_SIZE = 1024 * 1024  # 1 MB

def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security), db: Session = Depends(get_db)):
    """Dependency para obtener usuario autenticado"""
    user = AuthService.get_current_user(db, credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

def verify_admin(current_user: User = Depends(get_current_user)):
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Solo los administradores pueden realizar esta acción")
    return current_user

def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Usuario no encontrado")
    return user

def _check_email_free(db: Session, email: str):
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "El email ya está registrado")

@router.post("/login", response_model=TokenResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    user = AuthService.authenticate_user(db, login_data.email, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(
        access_token=AuthService.token_for(user),
        token_type="bearer",
        user_id=user.id,
        user_name=user.name,
        user_role=user.role.value
    )

@router.post("/register", response_model=UserResponse)
def register_user(user_data: UserCreate, db: Session = Depends(get_db), admin: User = Depends(verify_admin)):
    """Alta de usuarios con su perfil de firma (solo administradores)"""
    _check_email_free(db, user_data.email)
    new_user = User(
        **user_data.model_dump(exclude={"password"}),
        password_hash=AuthService.get_password_hash(user_data.password),
        is_active=True
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user

@router.get("/users", response_model=UserListResponse)
def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    role: Optional[UserRole] = Query(None, description="Filtrar por rol"),
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Usuarios para elegir firmantes y miembros de equipo"""
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    return UserListResponse(total=query.count(), users=query.order_by(User.id).offset(skip).limit(limit).all())

@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_user_or_404(db, user_id)

@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(user_id: int, user_data: UserUpdate, db: Session = Depends(get_db), admin: User = Depends(verify_admin)):
    user = _get_user_or_404(db, user_id)
    changes = user_data.model_dump(exclude_unset=True)
    if changes.get("email") and changes["email"] != user.email:
        _check_email_free(db, changes["email"])
    if "password" in changes:
        changes["password_hash"] = AuthService.get_password_hash(changes.pop("password"))
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user

@router.delete("/users/{user_id}")
def deactivate_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(verify_admin)):
    """Desactiva la cuenta; sus firmas y documentos se conservan"""
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "No puedes desactivar tu propia cuenta")
    user.is_active = False
    db.commit()
    return {"message": "Usuario desactivado exitosamente"}

@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user

@router.post("/me/signature", response_model=UserResponse)
async def upload_signature(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_storage)
):
    """Sube la imagen de firma que se estampa al aprobar"""
    ext = ALLOWED_SIGNATURE_TYPES.get(file.content_type)
    if ext is None:
        raise HTTPException(400, "La firma debe ser una imagen PNG o JPEG")
    contents = await file.read()
    if not contents or len(contents) > MAX_SIGNATURE_SIZE:
        raise HTTPException(400, "La imagen de firma debe pesar entre 1 byte y 1 MB")

    try:
        url = storage.upload(contents, f"signatures/{current_user.id}/{time.time_ns()}{ext}")
    except UploadError:
        raise HTTPException(409, "No se pudo guardar la firma, inténtalo de nuevo")

    user = db.get(User, current_user.id)
    user.signature_url = url
    db.commit()
    db.refresh(user)
    return user
