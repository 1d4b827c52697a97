from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, String, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from modules.documents.approval.roster import SignerRole

class SignerEntry(Base):
    __tablename__ = "signer_entries"
    __table_args__ = (UniqueConstraint("document_id", "order", "role", name="uq_signer_order_role"),)

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    user_id     = Column(Integer, ForeignKey("users.id"),     nullable=False)
    order       = Column(Integer, nullable=False)
    role        = Column(Enum(SignerRole), nullable=False)
    comment     = Column(String, nullable=True)
    signed_at   = Column(DateTime, nullable=True)

    document = relationship("Document", back_populates="signers")
    user     = relationship("User")
    placements = relationship("SignaturePlacement", back_populates="signer", order_by="SignaturePlacement.id", cascade="all, delete-orphan")

class SignaturePlacement(Base):
    __tablename__ = "signature_placements"

    id = Column(Integer, primary_key=True)
    signer_id = Column(Integer, ForeignKey("signer_entries.id"), nullable=False)
    page = Column(Integer, nullable=False)  # desde 1
    x    = Column(Float, nullable=False)    # puntos PDF
    y    = Column(Float, nullable=False)

    signer = relationship("SignerEntry", back_populates="placements")
