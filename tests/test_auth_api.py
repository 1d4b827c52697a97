import pytest
from fastapi.testclient import TestClient

from conftest import TestingSessionLocal, create_dummy_user
from database import get_db
from main import app
from modules.auth.services.auth_service import AuthService
from modules.documents.models.user import User, UserRole
from modules.documents.services.storage import get_storage


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(storage):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user_id):
    token = AuthService.create_access_token({"sub": f"test{user_id}@mail.com"})
    return {"Authorization": f"Bearer {token}"}


def test_usuario_actual(client, session):
    create_dummy_user(session, 1, first_name="Ana")
    body = client.get("/auth/me", headers=auth(1)).json()
    assert body["name"] == "Ana 1"
    assert body["role"] == "EMPLOYEE"
    assert body["signature_url"] is None


def test_token_invalido(client, session):
    create_dummy_user(session, 1)
    r = client.get("/auth/me", headers={"Authorization": "Bearer basura"})
    assert r.status_code == 401


def test_subir_imagen_de_firma(client, session, storage):
    create_dummy_user(session, 1)
    r = client.post("/auth/me/signature", headers=auth(1),
                    files={"file": ("firma.png", b"\x89PNG data", "image/png")})
    assert r.status_code == 200, r.text
    url = r.json()["signature_url"]
    assert url.startswith("http://files.test/signatures/1/")
    assert storage.download(url) == b"\x89PNG data"


def test_firma_debe_ser_imagen(client, session):
    create_dummy_user(session, 1)
    r = client.post("/auth/me/signature", headers=auth(1),
                    files={"file": ("firma.pdf", b"%PDF", "application/pdf")})
    assert r.status_code == 400


def test_desactivar_usuario_invalida_su_acceso(client, session):
    create_dummy_user(session, 1)
    create_dummy_user(session, 9, UserRole.ADMIN)
    assert client.delete("/auth/users/1", headers=auth(1)).status_code == 403
    assert client.delete("/auth/users/1", headers=auth(9)).status_code == 200
    session.expire_all()
    assert session.get(User, 1).is_active is False
    assert client.get("/auth/me", headers=auth(1)).status_code == 401


def test_permisos_por_rol():
    from modules.documents.services.permission import ROLE_PERMISSIONS, can_perform_action

    assert can_perform_action(UserRole.CLERK, "assign")
    assert not can_perform_action(UserRole.EMPLOYEE, "assign")
    # firmar y rechazar dependen del turno en el roster, no del rol
    assert all(set(actions) <= {"upload", "assign"} for actions in ROLE_PERMISSIONS.values())
