"""
Errores del núcleo de aprobación.

Los errores del roster vienen de la entrada y se corrigen corrigiéndola.
Los del flujo significan "no se puede actuar ahora" y nunca se reintentan solos.
Los de frontera vienen del almacenamiento o del servicio de firma; el detalle
va al log y el usuario solo ve un mensaje genérico.
"""


class FastDocError(Exception):
    """Base de todos los errores de dominio"""
    pass


class DocumentNotFoundError(FastDocError):
    pass


# --- Integridad del roster ---

class RosterError(FastDocError):
    pass


class InvalidOrderError(RosterError):
    pass


class OutOfBoundsError(RosterError):
    pass


class UnknownSignerError(RosterError):
    pass


class PositionLockedError(RosterError):
    """El turno del firmante ya llegó, sus posiciones están congeladas"""
    pass


class MissingPositionError(RosterError):
    pass


# --- Guardas de la máquina de estados ---

class WorkflowError(FastDocError):
    pass


class NotYourTurnError(WorkflowError):
    pass


class TerminalStateError(WorkflowError):
    pass


class ConcurrentModificationError(WorkflowError):
    pass


# --- Servicios externos ---

class BoundaryError(FastDocError):
    pass


class CompositionError(BoundaryError):
    pass


class CompositionTimeoutError(BoundaryError):
    pass


class UploadError(BoundaryError):
    pass


class FetchError(BoundaryError):
    pass


class SignatureImageMissingError(BoundaryError):
    pass


# --- Asignación de tareas ---

class AssignmentError(FastDocError):
    pass


class ReportRequiredError(AssignmentError):
    pass


class InvalidTransitionError(AssignmentError):
    pass


class TeamCompositionError(AssignmentError):
    pass


class AssignmentNotAvailableError(AssignmentError):
    pass
