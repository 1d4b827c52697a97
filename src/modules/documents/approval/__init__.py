from .errors import *  # noqa: F401,F403
from .geometry import to_dom_pixel, to_pdf_point
from .roster import SignaturePosition, SignerOrder, SignerRole, SignerRoster
from .workflow import (
    Actor,
    ApprovalStateMachine,
    DocumentState,
    DocumentStatus,
    RejectionRecord,
    Transition,
    compute_next,
)
