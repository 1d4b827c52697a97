from modules.documents.models.user import UserRole

# Permisos por rol para acciones fuera de la cadena de firma; quién firma o
# rechaza lo decide el turno en el roster del documento
ROLE_PERMISSIONS = {
    UserRole.EMPLOYEE: ["upload"],
    UserRole.CLERK: ["upload", "assign"],
    UserRole.ASSISTANT_DIRECTOR: ["upload"],
    UserRole.DEPUTY_DIRECTOR: ["upload", "assign"],
    UserRole.DIRECTOR: ["upload", "assign"],
    UserRole.ADMIN: ["upload", "assign"],
}

def can_perform_action(user_role: UserRole, action: str) -> bool:
    return action in ROLE_PERMISSIONS.get(user_role, [])
