from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from modules.documents.approval.errors import SignatureImageMissingError, UnknownSignerError
from modules.documents.models.user import User


@dataclass(frozen=True)
class Profile:
    user_id: int
    first_name: str
    last_name: str
    role: str
    position: Optional[str] = None
    academic_rank: Optional[str] = None
    org_structure_role: Optional[str] = None
    signature_url: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def get_profile(session: Session, user_id: int) -> Profile:
    user = session.get(User, user_id)
    if user is None:
        raise UnknownSignerError(f"User {user_id} does not exist")
    return Profile(
        user_id=user.id,
        first_name=user.first_name,
        last_name=user.last_name or "",
        role=user.role.value,
        position=user.position,
        academic_rank=user.academic_rank,
        org_structure_role=user.org_structure_role,
        signature_url=user.signature_url,
    )


def require_signature_image(profile: Profile) -> str:
    if not profile.signature_url:
        raise SignatureImageMissingError(
            f"User {profile.user_id} has no signature image on file"
        )
    return profile.signature_url
