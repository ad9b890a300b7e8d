import json
from datetime import datetime

from src.config import Config
from src.models.aviso import Aviso
from src.models.inscricao import Inscricao
from src.models.pagamento_asaas import EventoWebhookAsaas, PagamentoAsaas
from src.models.transferencia import SolicitacaoTransferencia
from src.services import notifications

WEBHOOK_URL = "/api/webhooks/asaas"


def webhook(event, payment_id, status, reference=None, **extra):
    payment = {"id": payment_id, "status": status, "value": 50.0, "billingType": "PIX"}
    if reference is not None:
        payment["externalReference"] = reference
    payment.update(extra)
    return {"event": event, "payment": payment}


def events(db):
    db.expire_all()
    return db.query(EventoWebhookAsaas).order_by(EventoWebhookAsaas.id).all()


# --- VALIDAÇÃO ---

def test_missing_event_or_payment_id_is_rejected(client, db):
    for body in ({"payment": {"id": "pay_1"}}, {"event": "PAYMENT_CONFIRMED"},
                 {"event": "PAYMENT_CONFIRMED", "payment": {"status": "CONFIRMED"}}):
        response = client.post(WEBHOOK_URL, json=body)
        assert response.status_code == 400
        assert response.json()["success"] is False

    assert events(db) == []


def test_webhook_token_is_checked_when_configured(client, db, monkeypatch):
    monkeypatch.setattr(Config, "ASAAS_WEBHOOK_TOKEN", "segredo")
    body = webhook("PAYMENT_CONFIRMED", "pay_1", "CONFIRMED")

    assert client.post(WEBHOOK_URL, json=body).status_code == 401
    assert client.post(WEBHOOK_URL, json=body, headers={"asaas-access-token": "outro"}).status_code == 401
    assert events(db) == []

    response = client.post(WEBHOOK_URL, json=body, headers={"asaas-access-token": "segredo"})
    assert response.status_code == 200


# --- FLUXO DA INSCRIÇÃO ---

def test_confirmed_payment_confirms_registration(client, db, make_user, make_registration, make_payment_record):
    runner = make_user("ana@example.com")
    inscricao = make_registration(runner, asaas_payment_id="pay_1")
    make_payment_record("pay_1", registration_id=inscricao.id)

    response = client.post(WEBHOOK_URL, json=webhook(
        "PAYMENT_CONFIRMED", "pay_1", "CONFIRMED", f"REG-{inscricao.id}",
        paymentDate="2026-10-19", pixTransactionId="pix-tx-1"
    ))

    assert response.status_code == 200
    assert response.json()["success"] is True
    db.expire_all()
    inscricao = db.get(Inscricao, inscricao.id)
    assert (inscricao.status, inscricao.payment_status) == ("confirmed", "paid")

    [evento] = events(db)
    assert evento.processed is True
    assert evento.registration_id == inscricao.id
    assert json.loads(evento.payload)["payment"]["id"] == "pay_1"


def test_duplicate_deliveries_are_idempotent(client, db, make_user, make_registration, make_payment_record):
    runner = make_user("ana@example.com")
    inscricao = make_registration(runner, asaas_payment_id="pay_1")
    make_payment_record("pay_1", registration_id=inscricao.id)
    body = webhook("PAYMENT_RECEIVED", "pay_1", "RECEIVED", f"REG-{inscricao.id}")

    for _ in range(3):
        assert client.post(WEBHOOK_URL, json=body).status_code == 200

    db.expire_all()
    inscricao = db.get(Inscricao, inscricao.id)
    assert (inscricao.status, inscricao.payment_status) == ("confirmed", "paid")
    assert [e.processed for e in events(db)] == [True, True, True]


def test_out_of_order_deliveries_converge(client, db, make_user, make_registration, make_payment_record):
    ana = make_user("ana@example.com")
    bia = make_user("bia@example.com")
    first = make_registration(ana, asaas_payment_id="pay_a", confirmation_code="REG-1-AAAAAAAAA")
    second = make_registration(bia, asaas_payment_id="pay_b", confirmation_code="REG-2-BBBBBBBBB")
    make_payment_record("pay_a", registration_id=first.id)
    make_payment_record("pay_b", registration_id=second.id)

    client.post(WEBHOOK_URL, json=webhook("PAYMENT_CONFIRMED", "pay_a", "CONFIRMED"))
    client.post(WEBHOOK_URL, json=webhook("PAYMENT_UPDATED", "pay_a", "CONFIRMED"))
    client.post(WEBHOOK_URL, json=webhook("PAYMENT_UPDATED", "pay_b", "CONFIRMED"))
    client.post(WEBHOOK_URL, json=webhook("PAYMENT_CONFIRMED", "pay_b", "CONFIRMED"))

    db.expire_all()
    for registration_id in (first.id, second.id):
        inscricao = db.get(Inscricao, registration_id)
        assert (inscricao.status, inscricao.payment_status) == ("confirmed", "paid")


def test_unknown_registration_is_recorded_but_answered_with_200(client, db):
    response = client.post(WEBHOOK_URL, json=webhook("PAYMENT_CONFIRMED", "pay_ghost", "CONFIRMED", "REG-999"))

    assert response.status_code == 200
    assert response.json()["success"] is True
    [evento] = events(db)
    assert evento.processed is False
    assert evento.error_message == "Registration not found"
    assert evento.registration_id is None


def test_registration_resolved_by_confirmation_code(client, db, make_user, make_registration):
    runner = make_user("ana@example.com")
    inscricao = make_registration(runner, confirmation_code="REG-1760000000000-K3J9QZ1WX")

    client.post(WEBHOOK_URL, json=webhook("PAYMENT_OVERDUE", "pay_x", "OVERDUE", "REG-1760000000000-K3J9QZ1WX"))

    db.expire_all()
    inscricao = db.get(Inscricao, inscricao.id)
    assert (inscricao.status, inscricao.payment_status) == ("pending", "failed")
    assert events(db)[0].registration_id == inscricao.id


def test_registration_resolved_by_raw_id(client, db, make_user, make_registration):
    runner = make_user("ana@example.com")
    inscricao = make_registration(runner)

    client.post(WEBHOOK_URL, json=webhook("PAYMENT_CONFIRMED", "pay_x", "CONFIRMED", str(inscricao.id)))

    db.expire_all()
    assert db.get(Inscricao, inscricao.id).payment_status == "paid"


def test_informational_event_changes_nothing(client, db, make_user, make_registration, make_payment_record):
    runner = make_user("ana@example.com")
    inscricao = make_registration(runner, asaas_payment_id="pay_1")
    make_payment_record("pay_1", registration_id=inscricao.id)

    client.post(WEBHOOK_URL, json=webhook("PAYMENT_CREATED", "pay_1", "PENDING"))

    db.expire_all()
    inscricao = db.get(Inscricao, inscricao.id)
    assert (inscricao.status, inscricao.payment_status) == ("pending", "pending")
    assert events(db)[0].processed is True


# --- FLUXO DA TAXA DE TRANSFERÊNCIA ---

def open_transfer(db, inscricao, requester, **fields):
    solicitacao = SolicitacaoTransferencia(
        registration_id=inscricao.id,
        requested_by=requester.id,
        transfer_fee=15,
        payment_status="pending",
        asaas_payment_id="pay_fee",
        status="pending",
        **fields
    )
    db.add(solicitacao)
    db.commit()
    db.refresh(solicitacao)
    return solicitacao


def test_paid_transfer_fee_transfers_registration(client, db, make_user, make_registration):
    ana = make_user("ana@example.com")
    bia = make_user("bia@example.com", cpf="12345678909")
    inscricao = make_registration(ana, status="confirmed", payment_status="paid")
    solicitacao = open_transfer(db, inscricao, ana, new_runner_cpf="123.456.789-09")
    body = webhook("PAYMENT_RECEIVED", "pay_fee", "RECEIVED", f"TRANSFER-{solicitacao.id}", value=15.0)

    response = client.post(WEBHOOK_URL, json=body)

    assert response.status_code == 200
    assert response.json()["message"] == "Payment confirmed and registration transferred"
    db.expire_all()
    solicitacao = db.get(SolicitacaoTransferencia, solicitacao.id)
    assert (solicitacao.status, solicitacao.payment_status) == ("completed", "paid")
    assert solicitacao.new_runner_id == bia.id
    inscricao = db.get(Inscricao, inscricao.id)
    assert (inscricao.runner_id, inscricao.status) == (bia.id, "transferred")
    assert inscricao.registered_by == ana.id

    avisos = db.query(Aviso).order_by(Aviso.id).all()
    assert [a.target_user_id for a in avisos] == [ana.id, bia.id]

    [evento] = events(db)
    assert evento.processed is True
    assert evento.transfer_request_id == solicitacao.id
    assert evento.registration_id is None

    # reentrega não transfere de novo
    assert client.post(WEBHOOK_URL, json=body).status_code == 200
    db.expire_all()
    assert db.query(Aviso).count() == 2
    assert db.get(Inscricao, inscricao.id).runner_id == bia.id


def test_unresolved_new_runner_leaves_transfer_pending(client, db, make_user, make_registration):
    ana = make_user("ana@example.com")
    inscricao = make_registration(ana, status="confirmed", payment_status="paid")
    solicitacao = open_transfer(db, inscricao, ana, new_runner_email="ninguem@example.com")

    response = client.post(WEBHOOK_URL, json=webhook(
        "PAYMENT_CONFIRMED", "pay_fee", "CONFIRMED", f"TRANSFER-{solicitacao.id}"
    ))

    assert response.status_code == 200
    db.expire_all()
    solicitacao = db.get(SolicitacaoTransferencia, solicitacao.id)
    assert (solicitacao.status, solicitacao.payment_status) == ("pending", "paid")
    assert db.get(Inscricao, inscricao.id).runner_id == ana.id
    [evento] = events(db)
    assert evento.processed is False
    assert "novo titular não foi encontrado" in evento.error_message


def test_unpaid_transfer_fee_event_does_nothing(client, db, make_user, make_registration):
    ana = make_user("ana@example.com")
    make_user("bia@example.com", cpf="12345678909")
    inscricao = make_registration(ana, status="confirmed", payment_status="paid")
    solicitacao = open_transfer(db, inscricao, ana, new_runner_cpf="12345678909")

    client.post(WEBHOOK_URL, json=webhook("PAYMENT_OVERDUE", "pay_fee", "OVERDUE", f"TRANSFER-{solicitacao.id}"))

    db.expire_all()
    solicitacao = db.get(SolicitacaoTransferencia, solicitacao.id)
    assert (solicitacao.status, solicitacao.payment_status) == ("pending", "pending")
    assert events(db)[0].processed is True


def test_missing_transfer_request_is_recorded(client, db):
    response = client.post(WEBHOOK_URL, json=webhook("PAYMENT_CONFIRMED", "pay_fee", "CONFIRMED", "TRANSFER-404"))

    assert response.status_code == 200
    [evento] = events(db)
    assert evento.processed is False
    assert evento.error_message == "Transfer request not found"


def test_transfer_reference_without_numeric_id_goes_to_transfer_flow(client, db):
    response = client.post(WEBHOOK_URL, json=webhook("PAYMENT_CONFIRMED", "pay_fee", "CONFIRMED", "TRANSFER-abc"))

    assert response.status_code == 200
    [evento] = events(db)
    assert evento.processed is False
    assert evento.error_message == "Transfer request not found"
    assert (evento.registration_id, evento.transfer_request_id) == (None, None)


def test_paid_transfer_fee_survives_notification_failure(client, db, make_user, make_registration, monkeypatch):
    ana = make_user("ana@example.com")
    bia = make_user("bia@example.com", cpf="12345678909")
    inscricao = make_registration(ana, status="confirmed", payment_status="paid")
    solicitacao = open_transfer(db, inscricao, ana, new_runner_cpf="12345678909")

    def broken_notify(*args, **kwargs):
        raise RuntimeError("tabela de avisos indisponível")

    monkeypatch.setattr(notifications, "notify_user", broken_notify)

    response = client.post(WEBHOOK_URL, json=webhook(
        "PAYMENT_RECEIVED", "pay_fee", "RECEIVED", f"TRANSFER-{solicitacao.id}"
    ))

    assert response.status_code == 200
    assert response.json()["message"] == "Payment confirmed and registration transferred"
    db.expire_all()
    assert db.get(SolicitacaoTransferencia, solicitacao.id).status == "completed"
    assert db.get(Inscricao, inscricao.id).runner_id == bia.id
    assert db.query(Aviso).count() == 0


# --- LIVRO-RAZÃO ---

def test_ledger_converges_regardless_of_delivery_order(client, db, make_user, make_registration, make_payment_record):
    ana = make_user("ana@example.com")
    bia = make_user("bia@example.com")
    first = make_registration(ana, asaas_payment_id="pay_a", confirmation_code="REG-1-AAAAAAAAA")
    second = make_registration(bia, asaas_payment_id="pay_b", confirmation_code="REG-2-BBBBBBBBB")
    make_payment_record("pay_a", registration_id=first.id)
    make_payment_record("pay_b", registration_id=second.id)

    def confirmed(payment_id):
        return webhook("PAYMENT_CONFIRMED", payment_id, "CONFIRMED",
                       paymentDate="2026-10-01", pixTransactionId="pix-tx-1")

    def updated(payment_id):
        return webhook("PAYMENT_UPDATED", payment_id, "CONFIRMED")

    client.post(WEBHOOK_URL, json=confirmed("pay_a"))
    client.post(WEBHOOK_URL, json=updated("pay_a"))
    client.post(WEBHOOK_URL, json=updated("pay_b"))
    client.post(WEBHOOK_URL, json=confirmed("pay_b"))

    db.expire_all()
    mirrored = {
        record.asaas_payment_id: (record.status, record.payment_date, record.pix_transaction_id)
        for record in db.query(PagamentoAsaas).all()
    }
    expected = ("CONFIRMED", datetime(2026, 10, 1), "pix-tx-1")
    assert mirrored == {"pay_a": expected, "pay_b": expected}
