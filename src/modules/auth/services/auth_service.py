import logging
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from config import get_settings
from modules.documents.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

class AuthService:
    """Contraseñas con bcrypt y tokens JWT firmados con la clave de la configuración"""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """Usuario activo cuyo email y contraseña coinciden, o None"""
        user = db.query(User).filter(User.email == email).first()
        if user is None or not user.is_active or not AuthService.verify_password(password, user.password_hash):
            logger.info("Failed login for %s", email)
            return None
        return user

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        settings = get_settings()
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
        claims = dict(data, exp=datetime.utcnow() + expires_delta)
        return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def token_for(user: User) -> str:
        """Token de acceso con el email como sujeto y el rol como dato informativo"""
        return AuthService.create_access_token({"sub": user.email, "role": user.role.value})

    @staticmethod
    def verify_token(token: str) -> Optional[str]:
        """Email del sujeto si el token es válido y no expiró"""
        settings = get_settings()
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            return None
        return payload.get("sub")

    @staticmethod
    def get_current_user(db: Session, token: str) -> Optional[User]:
        email = AuthService.verify_token(token)
        if email is None:
            return None
        user = db.query(User).filter(User.email == email).first()
        # Un usuario desactivado pierde el acceso aunque su token siga vigente
        if user is None or not user.is_active:
            return None
        return user
