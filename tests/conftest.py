"""Fixtures compartilhadas: banco SQLite em memória, cliente HTTP e Asaas simulado."""
import os

# Ambiente de teste definido ANTES de importar a aplicação
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ASAAS_WEBHOOK_TOKEN"] = ""
os.environ["ASAAS_API_KEY"] = "test-api-key"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from src.auth import create_access_token
from src.database import Base, get_db
from src.models.configuracao import ConfiguracaoSistema
from src.models.evento import Evento, CategoriaEvento, KitEvento
from src.models.inscricao import Inscricao
from src.models.pagamento_asaas import PagamentoAsaas
from src.models.usuario import Usuario
from src.services.asaas import AsaasClient, get_asaas_client

BASE_URL = "https://asaas.test/api/v3"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class StubResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data
        self.content = b"" if data is None else b"{}"

    def json(self):
        return self._data


class StubSession:
    """
    Substitui requests.Session. As respostas são enfileiradas por (método, caminho);
    a última resposta da fila se repete. Exceções na fila são levantadas.
    """

    def __init__(self):
        self.headers = {}
        self.calls = []
        self.routes = {}

    def add(self, method, path, *responses):
        self.routes[(method, path)] = list(responses)

    def request(self, method, url, params=None, json=None, timeout=None):
        path = url[len(BASE_URL):]
        self.calls.append((method, path, params, json))
        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"Chamada inesperada ao Asaas: {method} {path}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def paths(self, method=None):
        return [c[1] for c in self.calls if method is None or c[0] == method]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def asaas_session():
    return StubSession()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def gateway(asaas_session, sleeps):
    return AsaasClient(api_key="test-api-key", base_url=BASE_URL, session=asaas_session, sleep=sleeps.append)


@pytest.fixture
def client(db, gateway):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_asaas_client] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# --- FÁBRICAS ---

@pytest.fixture
def make_user(db):
    def _make_user(email, cpf=None, role="runner", nome=None):
        user = Usuario(email=email, cpf=cpf, role=role, nome=nome or email.split("@")[0].title(), telefone="11987654321")
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token({"sub": user.email, "role": user.role})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture
def make_event(db):
    def _make_event(price="50.00", kit_price=None, status="published", days_ahead=30, max_participants=None):
        evento = Evento(
            title="Corrida da Primavera",
            event_date=datetime.utcnow() + timedelta(days=days_ahead),
            location="Porto Alegre",
            status=status,
        )
        db.add(evento)
        db.flush()
        categoria = CategoriaEvento(event_id=evento.id, name="10K", distance="10km",
                                    price=Decimal(price), max_participants=max_participants)
        db.add(categoria)
        kit = None
        if kit_price is not None:
            kit = KitEvento(event_id=evento.id, name="Kit Camiseta", price=Decimal(kit_price))
            db.add(kit)
        db.commit()
        return evento, categoria, kit
    return _make_event


@pytest.fixture
def make_registration(db, make_event):
    def _make_registration(runner, status="pending", payment_status="pending", asaas_payment_id=None,
                           confirmation_code=None, amount="50.00"):
        evento, categoria, _ = make_event(price=amount)
        inscricao = Inscricao(
            event_id=evento.id,
            category_id=categoria.id,
            runner_id=runner.id,
            registered_by=runner.id,
            total_amount=Decimal(amount),
            status=status,
            payment_status=payment_status,
            payment_method="pix",
            confirmation_code=confirmation_code or f"REG-1700000000000-{runner.id:09d}",
            asaas_payment_id=asaas_payment_id,
        )
        db.add(inscricao)
        db.commit()
        db.refresh(inscricao)
        return inscricao
    return _make_registration


@pytest.fixture
def make_payment_record(db):
    def _make_payment_record(asaas_payment_id, registration_id=None, transfer_request_id=None,
                             status="PENDING", value="50.00", pix_qr_code=None):
        record = PagamentoAsaas(
            registration_id=registration_id,
            transfer_request_id=transfer_request_id,
            asaas_payment_id=asaas_payment_id,
            asaas_customer_id="cus_000001",
            value=Decimal(value),
            billing_type="PIX",
            status=status,
            external_reference=f"REG-{registration_id}" if registration_id else f"TRANSFER-{transfer_request_id}",
            pix_qr_code=pix_qr_code,
        )
        db.add(record)
        db.commit()
        return record
    return _make_payment_record


@pytest.fixture
def enable_transfers(db):
    def _enable_transfers(fee="0.00", enabled=True):
        db.add(ConfiguracaoSistema(enabled_modules={"transfers": enabled}, transfer_fee=Decimal(fee)))
        db.commit()
    return _enable_transfers
