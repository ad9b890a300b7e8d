from create_first_user import create_first_user
from conftest import TestingSessionLocal
from src.auth import get_password_hash, verify_password
from src.models.configuracao import ConfiguracaoSistema
from src.models.usuario import Usuario
from src.services.settings import DEFAULT_SETTINGS, get_system_settings, transfers_enabled


def test_login_and_me(client, db):
    db.add(Usuario(email="ana@example.com", nome="Ana", role="runner", hashed_password=get_password_hash("segredo123")))
    db.commit()

    response = client.post("/api/v1/auth/token", data={"username": "Ana@example.com", "password": "segredo123"})
    assert response.status_code == 200
    token = response.json()["access_token"]
    assert response.json()["user_info"]["email"] == "ana@example.com"

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "runner"

    wrong = client.post("/api/v1/auth/token", data={"username": "ana@example.com", "password": "errada"})
    assert wrong.status_code == 401


def test_pending_user_is_blocked(client, make_user, auth_headers):
    user = make_user("novo@example.com", role="pendente")

    assert client.get("/api/v1/auth/me", headers=auth_headers(user)).status_code == 403
    assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalido"}).status_code == 401


def test_settings_default_when_table_is_empty(db):
    settings = get_system_settings(db)

    assert settings == DEFAULT_SETTINGS
    assert not transfers_enabled(settings)


def test_create_first_user(db, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "Admin@Corridas.com.br")
    monkeypatch.setenv("ADMIN_PASSWORD", "troque-esta-senha")

    create_first_user(session_factory=TestingSessionLocal)
    create_first_user(session_factory=TestingSessionLocal)

    db.expire_all()
    [admin] = db.query(Usuario).all()
    assert (admin.email, admin.role) == ("admin@corridas.com.br", "admin")
    assert verify_password("troque-esta-senha", admin.hashed_password)
    assert db.query(ConfiguracaoSistema).count() == 1
    assert not transfers_enabled(get_system_settings(db))


def test_create_first_user_without_password_only_seeds_settings(db, monkeypatch):
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)

    create_first_user(session_factory=TestingSessionLocal)

    db.expire_all()
    assert db.query(Usuario).count() == 0
    assert db.query(ConfiguracaoSistema).count() == 1


def test_app_startup_seeds_system_settings():
    import main  # noqa: F401
    from src.database import SessionLocal

    session = SessionLocal()
    try:
        assert session.query(ConfiguracaoSistema).count() == 1
    finally:
        session.close()
