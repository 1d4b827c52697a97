from sqlalchemy import Boolean, Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base
from modules.documents.approval.roster import SignerOrder
from modules.documents.approval.workflow import DocumentStatus

class DocumentKind(PyEnum):
    MEMO = "memo"
    DOC_RECEIVE = "doc_receive"

class Document(Base):
    __tablename__ = 'documents'

    id = Column(Integer, primary_key=True)
    subject = Column(String, nullable=False)
    doc_number = Column(String, nullable=True)
    kind = Column(Enum(DocumentKind), nullable=False, default=DocumentKind.MEMO)
    is_report_memo = Column(Boolean, nullable=False, default=False)

    name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)

    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.DRAFT)
    current_signer_order = Column(Integer, nullable=False, default=SignerOrder.DRAFT)
    version = Column(Integer, nullable=False, default=1)

    upload_date = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    signed_date = Column(DateTime, nullable=True)

    is_assigned = Column(Boolean, nullable=False, default=False)

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    user = relationship("User", back_populates="documents")


    # Roster de firmantes (niveles de aprobación y firmante final)
    signers = relationship("SignerEntry", back_populates="document", order_by="[SignerEntry.order, SignerEntry.id]", cascade="all, delete-orphan")

    # Firmas aplicadas, en orden
    signatures = relationship("SignatureRecord", back_populates="document", order_by="SignatureRecord.id", cascade="all, delete-orphan")

    rejections = relationship("Rejection", back_populates="document", order_by="Rejection.id", cascade="all, delete-orphan")

    @property
    def last_rejection(self):
        return self.rejections[-1] if self.rejections else None
