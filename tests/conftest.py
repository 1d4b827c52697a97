import io
from datetime import datetime

import pytest
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import create_tables  # noqa: F401  registra todos los modelos
from database import Base
from modules.documents.models.user import User, UserRole
from modules.documents.services.storage import LocalFileStorage

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(str(tmp_path / "uploads"), "http://files.test")


def create_dummy_pdf_bytes(text="PDF para test", pages=1):
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    for n in range(pages):
        c.drawString(50, 750, f"{text} - página {n + 1}")
        c.showPage()
    c.save()
    buf.seek(0)
    return buf.read()


def create_dummy_user(session, id, role=UserRole.EMPLOYEE, storage=None, first_name="Test"):
    user = User(
        id=id,
        first_name=first_name,
        last_name=str(id),
        email=f"test{id}@mail.com",
        password_hash="123",
        role=role,
        position="Analista",
        academic_rank="Dr.",
        org_structure_role="Jefatura",
        is_active=True,
        created_at=datetime.utcnow(),
    )
    if storage is not None:
        user.signature_url = storage.upload(b"\x89PNG fake", f"signatures/{id}/firma.png")
    session.add(user)
    session.commit()
    return user


class FakeCompositor:
    """Devuelve un PDF nuevo por cada firma y guarda lo recibido"""

    def __init__(self, on_submit=None, error=None):
        self.calls = []
        self.on_submit = on_submit
        self.error = error

    def submit(self, payload, pdf_bytes, signature_image_bytes, before_retry=None):
        self.calls.append(payload)
        if self.on_submit is not None:
            self.on_submit()
        if self.error is not None:
            raise self.error
        return create_dummy_pdf_bytes(f"firmado {len(self.calls)}")
