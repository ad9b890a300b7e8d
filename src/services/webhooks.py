# -*- coding: utf-8 -*-
"""
Processamento dos webhooks do Asaas.

Cada entrega é gravada em asaas_webhook_events (com commit) antes de qualquer outra
alteração. Falhas de negócio nunca sobem para o Asaas: ficam registradas em
`error_message` para conferência manual.
"""
import json
import logging
from typing import Optional

from sqlalchemy.orm import Session

from src.models.inscricao import Inscricao
from src.models.pagamento_asaas import EventoWebhookAsaas
from src.models.transferencia import SolicitacaoTransferencia, OPEN_STATUSES
from src.models.usuario import Usuario
from src.services import ledger
from src.services.payment_state import (
    GatewayPaymentStatus, WebhookEventType, apply_transition, next_state
)
from src.services.registrations import notify_transfer
from src.services.transfers import execute_if_not_completed, resolve_new_runner

logger = logging.getLogger(__name__)

REGISTRATION_NOT_FOUND = "Registration not found"
PAID_EVENTS = (WebhookEventType.PAYMENT_CONFIRMED, WebhookEventType.PAYMENT_RECEIVED)


def record_event(db: Session, event_type: str, payment: dict, payload: dict,
                 registration_id: Optional[int] = None,
                 transfer_request_id: Optional[int] = None) -> EventoWebhookAsaas:
    evento = EventoWebhookAsaas(
        event_type=event_type,
        asaas_payment_id=payment.get("id"),
        registration_id=registration_id,
        transfer_request_id=transfer_request_id,
        payload=json.dumps(payload, default=str),
        processed=False,
    )
    db.add(evento)
    db.commit()
    db.refresh(evento)
    return evento


def _finish_event(db: Session, event_id: int, processed: bool, error_message: Optional[str] = None):
    evento = db.query(EventoWebhookAsaas).filter(EventoWebhookAsaas.id == event_id).first()
    evento.processed = processed
    evento.error_message = error_message
    db.commit()


def resolve_registration_id(db: Session, asaas_payment_id: str, reference: ledger.ExternalReference) -> Optional[int]:
    """
    Ordem: livro-razão pelo id do Asaas -> externalReference como id (ou REG-<id>)
    -> externalReference como código de confirmação.
    """
    record = ledger.find_by_gateway_id(db, asaas_payment_id)
    if record and record.registration_id:
        return record.registration_id

    if reference.kind == "registration":
        inscricao = db.query(Inscricao.id).filter(Inscricao.id == reference.value).first()
        if inscricao:
            return inscricao.id
    elif reference.kind == "raw":
        inscricao = db.query(Inscricao.id).filter(Inscricao.confirmation_code == reference.value).first()
        if inscricao:
            return inscricao.id
    return None


def process_webhook(db: Session, payload: dict) -> str:
    """Roteia a entrega para o fluxo de inscrição ou de taxa de transferência."""
    event_type = payload["event"]
    payment = payload["payment"]
    reference = ledger.parse_external_reference(payment.get("externalReference"))

    logger.info(f"Webhook Asaas recebido: {event_type} pagamento={payment.get('id')} ref={payment.get('externalReference')}")

    if reference.kind == "transfer":
        return process_transfer_fee(db, event_type, payment, payload, reference.value)
    return process_registration_payment(db, event_type, payment, payload, reference)


# --- INSCRIÇÃO ---

def process_registration_payment(db: Session, event_type: str, payment: dict, payload: dict,
                                 reference: ledger.ExternalReference) -> str:
    registration_id = resolve_registration_id(db, payment["id"], reference)
    evento = record_event(db, event_type, payment, payload, registration_id=registration_id)

    try:
        ledger.mirror_gateway_status(
            db, payment["id"], payment.get("status"),
            payment.get("paymentDate") or payment.get("clientPaymentDate"),
            payment.get("pixTransactionId"),
        )

        if registration_id is None:
            logger.warning(f"Inscrição não encontrada para o pagamento {payment['id']}")
            evento = db.query(EventoWebhookAsaas).filter(EventoWebhookAsaas.id == evento.id).first()
            evento.processed = False
            evento.error_message = REGISTRATION_NOT_FOUND
            db.commit()
            return "Webhook received and processed"

        transition = next_state(event_type, payment.get("status"))
        if transition is None:
            logger.info(f"Evento {event_type} não altera a inscrição {registration_id}")
        else:
            inscricao = apply_transition(db, registration_id, transition)
            if inscricao is None:
                raise LookupError(f"Inscrição {registration_id} desapareceu durante o processamento")

        evento = db.query(EventoWebhookAsaas).filter(EventoWebhookAsaas.id == evento.id).first()
        evento.processed = True
        evento.error_message = None
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Erro ao processar webhook {evento.id}: {e}")
        _finish_event(db, evento.id, False, str(e))

    return "Webhook received and processed"


# --- TAXA DE TRANSFERÊNCIA ---

def process_transfer_fee(db: Session, event_type: str, payment: dict, payload: dict,
                         transfer_request_id: int) -> str:
    evento = record_event(db, event_type, payment, payload, transfer_request_id=transfer_request_id)

    try:
        ledger.mirror_gateway_status(
            db, payment["id"], payment.get("status"),
            payment.get("paymentDate") or payment.get("clientPaymentDate"),
            payment.get("pixTransactionId"),
        )
        paid = (
            WebhookEventType.parse(event_type) in PAID_EVENTS
            or GatewayPaymentStatus.parse(payment.get("status")).is_paid
        )

        if not paid:
            _finish_event(db, evento.id, True)
            return "Webhook received and processed"

        solicitacao = None
        if transfer_request_id is not None:
            solicitacao = db.query(SolicitacaoTransferencia).filter(
                SolicitacaoTransferencia.id == transfer_request_id
            ).first()
        if not solicitacao:
            db.commit()
            logger.error(f"Solicitação de transferência {transfer_request_id} não encontrada")
            _finish_event(db, evento.id, False, "Transfer request not found")
            return "Webhook received and processed"

        solicitacao.payment_status = "paid"
        db.commit()
        logger.info(f"Taxa da solicitação {transfer_request_id} paga")
    except Exception as e:
        db.rollback()
        logger.error(f"Erro ao processar webhook de transferência {evento.id}: {e}")
        _finish_event(db, evento.id, False, str(e))
        return "Webhook received and processed"

    return auto_transfer(db, evento.id, transfer_request_id)


def auto_transfer(db: Session, event_id: int, transfer_request_id: int) -> str:
    """
    Executa a transferência assim que a taxa é confirmada.

    Erros de identificação do novo titular não são devolvidos ao Asaas: o pagamento já
    foi confirmado, então a solicitação fica pendente e o erro vai para o evento.
    """
    solicitacao = db.query(SolicitacaoTransferencia).filter(
        SolicitacaoTransferencia.id == transfer_request_id
    ).first()
    if not solicitacao:
        _finish_event(db, event_id, False, "Transfer request not found")
        return "Webhook received and processed"

    if solicitacao.status == "completed":
        logger.info(f"Solicitação {transfer_request_id} já concluída; nada a fazer")
        _finish_event(db, event_id, True)
        return "Webhook received and processed"

    if solicitacao.status not in OPEN_STATUSES:
        logger.warning(f"Solicitação {transfer_request_id} está {solicitacao.status}; transferência automática ignorada")
        _finish_event(db, event_id, True)
        return "Payment confirmed, transfer request is not open"

    new_runner = resolve_new_runner(db, solicitacao)
    if not new_runner:
        message = "Pagamento confirmado, mas o novo titular não foi encontrado. A transferência aguarda conclusão manual."
        logger.warning(f"Solicitação {transfer_request_id}: {message}")
        _finish_event(db, event_id, False, message)
        return message

    inscricao = solicitacao.inscricao
    if inscricao is None or new_runner.id == inscricao.runner_id:
        message = "Pagamento confirmado, mas a inscrição já pertence ao novo titular ou não existe."
        _finish_event(db, event_id, False, message)
        return message
    previous_runner_id = inscricao.runner_id

    try:
        executed = execute_if_not_completed(db, transfer_request_id, new_runner.id)
    except Exception as e:
        logger.error(f"Erro na transferência automática da solicitação {transfer_request_id}: {e}")
        _finish_event(db, event_id, False, f"Erro ao transferir inscrição: {e}")
        return "Payment confirmed, transfer failed"

    _finish_event(db, event_id, True)
    if not executed:
        return "Webhook received and processed"

    inscricao = db.query(Inscricao).filter(Inscricao.id == inscricao.id).first()
    new_runner = db.query(Usuario).filter(Usuario.id == new_runner.id).first()
    notify_transfer(db, inscricao, previous_runner_id, new_runner)
    return "Payment confirmed and registration transferred"
