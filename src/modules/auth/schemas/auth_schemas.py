from datetime import datetime
from pydantic import BaseModel, EmailStr
from typing import Optional, List
from modules.documents.models.user import UserRole

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    user_id: int
    user_name: str
    user_role: str

class UserCreate(BaseModel):
    first_name: str
    last_name: str = ""
    email: EmailStr
    password: str
    role: UserRole
    position: Optional[str] = None
    academic_rank: Optional[str] = None
    org_structure_role: Optional[str] = None

class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None
    position: Optional[str] = None
    academic_rank: Optional[str] = None
    org_structure_role: Optional[str] = None
    is_active: Optional[bool] = None

class UserResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    name: str
    email: str
    role: UserRole
    position: Optional[str] = None
    academic_rank: Optional[str] = None
    org_structure_role: Optional[str] = None
    signature_url: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}

class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
