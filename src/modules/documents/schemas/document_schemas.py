from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from modules.documents.approval.roster import SignerRole
from modules.documents.models.document import DocumentKind, DocumentStatus


class SignerIn(BaseModel):
    order: int = Field(..., ge=2, le=4)
    role: SignerRole
    user_id: int


class SignersUpdateRequest(BaseModel):
    signers: List[SignerIn]
    clerk_id: Optional[int] = None


class SignerResponse(BaseModel):
    order: int
    role: SignerRole
    user_id: int
    comment: Optional[str] = None
    signed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PositionRequest(BaseModel):
    """Puntos PDF (x, y) o un click (dom_x, dom_y) sobre la página renderizada al tamaño indicado"""
    order: int = Field(..., ge=1, le=4)
    page: int = Field(..., ge=1)
    # En el orden 1 elige entre autor y secretaría
    role: Optional[SignerRole] = None
    x: Optional[float] = None
    y: Optional[float] = None
    dom_x: Optional[float] = None
    dom_y: Optional[float] = None
    rendered_width: Optional[float] = Field(None, gt=0)
    rendered_height: Optional[float] = Field(None, gt=0)

    @model_validator(mode="after")
    def check_coordinates(self):
        has_pdf = self.x is not None and self.y is not None
        has_dom = None not in (self.dom_x, self.dom_y, self.rendered_width, self.rendered_height)
        if has_pdf == has_dom:
            raise ValueError("Give either x/y or dom_x/dom_y with rendered_width/rendered_height")
        return self


class PositionResponse(BaseModel):
    order: int
    role: str
    user_id: int
    page: int
    x: float
    y: float
    dom_x: Optional[float] = None
    dom_y: Optional[float] = None


class RejectionResponse(BaseModel):
    user_id: int
    name: str
    reason: str
    order: int
    created_at: datetime

    model_config = {"from_attributes": True}


class SignatureResponse(BaseModel):
    user_id: int
    order: int
    comment: Optional[str] = None
    ts: datetime
    sha256_hash: str

    model_config = {"from_attributes": True}


class DocumentResponse(BaseModel):
    id: int
    subject: str
    doc_number: Optional[str] = None
    kind: DocumentKind
    is_report_memo: bool
    name: str
    file_size: int
    status: DocumentStatus
    current_signer_order: int
    version: int
    is_assigned: bool
    user_id: int
    upload_date: datetime
    signed_date: Optional[datetime] = None
    signers: List[SignerResponse] = []
    signatures: List[SignatureResponse] = []
    last_rejection: Optional[RejectionResponse] = None

    model_config = {"from_attributes": True}


class ActionRequest(BaseModel):
    expected_version: Optional[int] = None


class ApproveRequest(ActionRequest):
    comment: Optional[str] = Field(None, max_length=1000)


class RejectRequest(ActionRequest):
    reason: str = Field(..., min_length=1, max_length=1000)


class TransitionResponse(BaseModel):
    document_id: int
    current_signer_order: int
    status: DocumentStatus
