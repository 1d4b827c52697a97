"""
Adaptador del servicio externo de firma (``add_signature_v2``).

Cada aprobación genera un bloque de firma por cada posición colocada del
firmante. El contenido del bloque depende del rol; el comentario libre solo
se imprime en el primer bloque de cada acción.
"""
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

import httpx

from config import get_settings
from modules.documents.approval.errors import (
    CompositionError,
    CompositionTimeoutError,
    UnknownSignerError,
)
from modules.documents.approval.roster import SignerRole, SignerRoster
from modules.documents.services.profiles import Profile

logger = logging.getLogger(__name__)

SIGNATURE_FILE_KEY = "sig1"

# Roles cuyo bloque siempre empieza con una línea de opinión
COMMENTING_ROLES = {SignerRole.DEPUTY, SignerRole.DIRECTOR}


@dataclass(frozen=True)
class ContentLine:
    type: str
    value: Optional[str] = None
    file_key: Optional[str] = None

    def to_dict(self) -> dict:
        if self.type == "image":
            return {"type": "image", "file_key": self.file_key}
        return {"type": self.type, "value": self.value or ""}


@dataclass(frozen=True)
class SignatureBlock:
    page: int                  # desde 1, como se guarda
    x: float
    y: float
    content_lines: List[ContentLine] = field(default_factory=list)
    width: int = 120
    height: int = 60

    @property
    def comment(self) -> Optional[str]:
        for line in self.content_lines:
            if line.type == "comment":
                return line.value
        return None

    def to_wire(self) -> dict:
        return {
            "page": self.page - 1,  # el servicio cuenta páginas desde 0
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "lines": [line.to_dict() for line in self.content_lines],
        }


def _content_lines(role: SignerRole, profile: Profile, comment: Optional[str], signed_on: date) -> List[ContentLine]:
    image = ContentLine("image", file_key=SIGNATURE_FILE_KEY)
    name = ContentLine("name", profile.full_name)
    lines: List[ContentLine] = []

    if comment:
        lines.append(ContentLine("comment", comment))

    if role == SignerRole.ASSISTANT:
        lines += [
            image,
            name,
            ContentLine("academic_rank", profile.academic_rank or ""),
            ContentLine("org_structure_role", profile.org_structure_role or ""),
        ]
    elif role == SignerRole.DEPUTY:
        lines += [
            image,
            name,
            ContentLine("org_structure_role", profile.org_structure_role or ""),
            ContentLine("timestamp", signed_on.strftime("%d %b %Y")),
        ]
    elif role == SignerRole.DIRECTOR:
        lines += [
            image,
            name,
            ContentLine("org_structure_role", profile.org_structure_role or ""),
        ]
    else:
        lines += [
            image,
            name,
            ContentLine("academic_rank", profile.position or ""),
        ]
    return lines


def build_signature_payload(
    roster: SignerRoster,
    acting_order: int,
    comment: Optional[str],
    profile: Profile,
    signed_on: Optional[date] = None,
) -> List[SignatureBlock]:
    settings = get_settings()
    signed_on = signed_on or date.today()

    group = [e for e in roster.entries() if e.order == acting_order]
    if not group:
        raise UnknownSignerError(f"No signer at order {acting_order}")
    own = [e for e in group if e.user_id == profile.user_id]
    # Un administrador que actúa por otro firma la entrada principal del turno
    entries = own or [roster.entry_at(acting_order)]

    comment = (comment or "").strip()
    blocks: List[SignatureBlock] = []
    for entry in entries:
        role = entry.role
        for position in entry.positions:
            line_comment = None
            if not blocks:
                if comment and role not in (SignerRole.AUTHOR, SignerRole.CLERK):
                    line_comment = comment
                elif role in COMMENTING_ROLES:
                    line_comment = settings.default_approval_comment
            blocks.append(SignatureBlock(
                page=position.page,
                x=position.x,
                y=position.y,
                content_lines=_content_lines(role, profile, line_comment, signed_on),
                width=settings.signature_block_width,
                height=settings.signature_block_height,
            ))
    return blocks


class SignatureCompositor:
    """Cliente HTTP del servicio de firma con timeout y reintentos acotados"""

    def __init__(
        self,
        base_url: str,
        endpoint: str = "/add_signature_v2",
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = base_url.rstrip("/") + endpoint
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._client = client or httpx.Client(timeout=timeout, trust_env=False)
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def submit(
        self,
        payload: List[SignatureBlock],
        pdf_bytes: bytes,
        signature_image_bytes: bytes,
        before_retry: Optional[Callable[[], None]] = None,
    ) -> bytes:
        """
        Envía el PDF, la imagen de firma y la disposición de bloques; devuelve el
        PDF firmado. Solo se reintentan los timeouts, con espera exponencial.
        ``before_retry`` corre antes de cada reintento para que quien llama
        confirme que el documento no avanzó mientras tanto.
        """
        if not payload:
            raise CompositionError("Nothing to sign: the signer has no placed positions")

        files = {
            "pdf": ("document.pdf", pdf_bytes, "application/pdf"),
            SIGNATURE_FILE_KEY: ("signature.png", signature_image_bytes, "image/png"),
        }
        data = {"signatures": json.dumps([b.to_wire() for b in payload], ensure_ascii=False)}

        attempt = 0
        while True:
            try:
                response = self._client.post(self.url, files=files, data=data)
            except httpx.TimeoutException as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error("Signing service timed out %d times, giving up", attempt)
                    raise CompositionTimeoutError("The signing service did not answer in time") from e
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning("Signing service timed out (attempt %d), retrying in %.1fs", attempt, delay)
                self._sleep(delay)
                if before_retry is not None:
                    before_retry()
                continue
            except httpx.HTTPError as e:
                logger.error("Signing service request failed: %s", e)
                raise CompositionError("The signing service could not be reached") from e

            if response.status_code >= 400:
                logger.error("Signing service error %s: %s", response.status_code, response.text)
                raise CompositionError(f"The signing service answered {response.status_code}")
            if not response.content:
                raise CompositionError("The signing service returned an empty document")
            return response.content


def get_compositor():
    settings = get_settings()
    compositor = SignatureCompositor(
        base_url=settings.compositor_base_url,
        endpoint=settings.compositor_endpoint,
        timeout=settings.compositor_timeout_seconds,
        max_retries=settings.compositor_max_retries,
        backoff_seconds=settings.compositor_backoff_seconds,
    )
    try:
        yield compositor
    finally:
        compositor.close()
