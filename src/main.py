import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import get_settings
from create_tables import crear_tablas
from database import SessionLocal

from modules.documents.job import start_cleanup_job
from modules.documents.models import User, UserRole
from modules.auth.services.auth_service import AuthService
from modules.notifications.controllers.notification_controller import router as notification_router
from modules.documents.controllers.document_controller import router as document_router
from modules.documents.controllers.signature_controller import router as signature_router
from modules.auth.controllers.auth_controller import router as auth_router
from modules.tasks.controllers.task_controller import router as task_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Arranque ---
    logger.info("Iniciando aplicación...")
    crear_tablas()
    scheduler = start_cleanup_job(settings.superseded_sweep_minutes)
    logger.info("Limpieza de PDFs reemplazados cada %s minutos", settings.superseded_sweep_minutes)
    if settings.seed_demo_users:
        _crear_datos_prueba()
    yield
    # --- Apagado ---
    scheduler.shutdown(wait=False)
    logger.info("Aplicación detenida")

def _crear_datos_prueba():
    """Crea un usuario por rol para probar la cadena de firmas."""
    with SessionLocal() as session:
        if session.query(User).count() > 0:
            logger.info("Datos de prueba ya existen")
            return

        demo = [
            ("Juan", "Pérez", "juan@empresa.com", "juan123", UserRole.EMPLOYEE),
            ("Lucía", "Soto", "lucia@empresa.com", "lucia123", UserRole.CLERK),
            ("Ana", "García", "ana@empresa.com", "ana123", UserRole.ASSISTANT_DIRECTOR),
            ("Pedro", "Rojas", "pedro@empresa.com", "pedro123", UserRole.DEPUTY_DIRECTOR),
            ("Marta", "Díaz", "marta@empresa.com", "marta123", UserRole.DIRECTOR),
            ("Carlos", "López", "carlos@empresa.com", "carlos123", UserRole.ADMIN),
        ]
        for first_name, last_name, email, password, role in demo:
            session.add(User(
                first_name=first_name,
                last_name=last_name,
                email=email,
                password_hash=AuthService.get_password_hash(password),
                role=role,
                is_active=True
            ))
            logger.info("Usuario de prueba %s (%s)", email, role.value)
        session.commit()

app = FastAPI(
    title=settings.app_name,
    description="API para aprobación secuencial de documentos con firma visual",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=[
        "Accept",
        "Accept-Language",
        "Content-Language",
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "Origin",
    ],
    max_age=86400,
)
# Routers
app.include_router(auth_router)
app.include_router(notification_router, prefix="/notifications", tags=["notifications"])
app.include_router(document_router, prefix="/documents", tags=["documents"])
app.include_router(signature_router, prefix="/documents", tags=["documents"])
app.include_router(task_router, prefix="/tasks", tags=["tasks"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
