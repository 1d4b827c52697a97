from sqlalchemy import Column, Integer, DateTime, String
from datetime import datetime
from database import Base

class SupersededFile(Base):
    """PDF reemplazado por una versión firmada, pendiente de borrar del almacenamiento"""
    __tablename__ = "superseded_files"

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, nullable=False)
    path = Column(String, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
