from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from datetime import datetime
from database import Base

class UserRole(PyEnum):
    EMPLOYEE = "EMPLOYEE"
    CLERK = "CLERK"
    ASSISTANT_DIRECTOR = "ASSISTANT_DIRECTOR"
    DEPUTY_DIRECTOR = "DEPUTY_DIRECTOR"
    DIRECTOR = "DIRECTOR"
    ADMIN = "ADMIN"

class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(Enum(UserRole), nullable=False)

    # Se imprime bajo la imagen de firma
    position = Column(String, nullable=True)
    academic_rank = Column(String, nullable=True)
    org_structure_role = Column(String, nullable=True)
    signature_url = Column(String, nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relación con documentos
    documents = relationship("Document", back_populates="user")

    # Relación con notificaciones
    notifications = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
