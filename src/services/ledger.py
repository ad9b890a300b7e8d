# -*- coding: utf-8 -*-
"""
Livro-razão das cobranças do Asaas (tabela asaas_payments).

As funções daqui não fazem commit: quem chama decide a fronteira da transação.
"""
import logging
from collections import namedtuple
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from src.models.pagamento_asaas import PagamentoAsaas

logger = logging.getLogger(__name__)

REGISTRATION_PREFIX = "REG-"
TRANSFER_PREFIX = "TRANSFER-"

# Cobranças nesses estados não contam como "ativas" para a inscrição
INACTIVE_STATUSES = ("REFUNDED", "OVERDUE", "DELETED")

ExternalReference = namedtuple("ExternalReference", ["kind", "value"])


def registration_reference(registration_id) -> str:
    return f"{REGISTRATION_PREFIX}{registration_id}"


def transfer_reference(transfer_request_id) -> str:
    return f"{TRANSFER_PREFIX}{transfer_request_id}"


def parse_external_reference(reference: Optional[str]) -> ExternalReference:
    """
    Classifica a externalReference de uma cobrança.

    - "TRANSFER-12" -> ("transfer", 12)
    - "TRANSFER-xx" -> ("transfer", None)
    - "REG-7"       -> ("registration", 7)
    - "7"           -> ("registration", 7)
    - qualquer outro texto (ex.: código de confirmação) -> ("raw", texto)
    - vazio         -> ("none", None)
    """
    if not reference:
        return ExternalReference("none", None)
    reference = reference.strip()

    if reference.startswith(TRANSFER_PREFIX):
        raw_id = reference[len(TRANSFER_PREFIX):]
        # Sufixo inválido continua sendo taxa de transferência, só que sem solicitação
        return ExternalReference("transfer", int(raw_id) if raw_id.isdigit() else None)

    if reference.startswith(REGISTRATION_PREFIX) and reference[len(REGISTRATION_PREFIX):].isdigit():
        return ExternalReference("registration", int(reference[len(REGISTRATION_PREFIX):]))

    if reference.isdigit():
        return ExternalReference("registration", int(reference))

    return ExternalReference("raw", reference)


def parse_gateway_date(value):
    """Converte datas do Asaas ('2024-05-01' ou ISO completo) para datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        logger.warning(f"Data em formato inesperado recebida do Asaas: {value}")
        return None


def find_by_gateway_id(db: Session, asaas_payment_id: str) -> Optional[PagamentoAsaas]:
    return db.query(PagamentoAsaas).filter(PagamentoAsaas.asaas_payment_id == asaas_payment_id).first()


def active_for_registration(db: Session, registration_id: int) -> Optional[PagamentoAsaas]:
    return db.query(PagamentoAsaas).filter(
        PagamentoAsaas.registration_id == registration_id,
        PagamentoAsaas.status.notin_(INACTIVE_STATUSES)
    ).order_by(PagamentoAsaas.created_at.desc()).first()


def latest_for_registration(db: Session, registration_id: int) -> Optional[PagamentoAsaas]:
    return db.query(PagamentoAsaas).filter(
        PagamentoAsaas.registration_id == registration_id
    ).order_by(PagamentoAsaas.created_at.desc(), PagamentoAsaas.id.desc()).first()


def record_payment(
    db: Session,
    payment: dict,
    customer_id: str,
    registration_id: Optional[int] = None,
    transfer_request_id: Optional[int] = None,
    pix_qr_code: Optional[str] = None,
    pix_qr_code_id: Optional[str] = None,
) -> PagamentoAsaas:
    """Insere a linha do livro-razão a partir da resposta de criação do Asaas."""
    due_date = parse_gateway_date(payment.get("dueDate"))
    net_value = payment.get("netValue")

    record = PagamentoAsaas(
        registration_id=registration_id,
        transfer_request_id=transfer_request_id,
        asaas_payment_id=payment["id"],
        asaas_customer_id=customer_id,
        value=Decimal(str(payment.get("value", 0))),
        net_value=Decimal(str(net_value)) if net_value is not None else None,
        billing_type=payment.get("billingType", "PIX"),
        status=payment.get("status", "PENDING"),
        due_date=due_date.date() if due_date else None,
        payment_link=payment.get("paymentLink"),
        invoice_url=payment.get("invoiceUrl"),
        bank_slip_url=payment.get("bankSlipUrl"),
        external_reference=payment.get("externalReference"),
        pix_qr_code_id=pix_qr_code_id,
        pix_qr_code=pix_qr_code,
    )
    db.add(record)
    db.flush()
    return record


def mirror_gateway_status(db: Session, asaas_payment_id: str, status: Optional[str],
                          payment_date=None, pix_transaction_id: Optional[str] = None) -> Optional[PagamentoAsaas]:
    """Espelha no livro-razão o status atual informado pelo Asaas."""
    record = find_by_gateway_id(db, asaas_payment_id)
    if not record:
        logger.warning(f"Cobrança {asaas_payment_id} não existe no livro-razão; nada a espelhar")
        return None

    # Entregas sem data ou sem transação não apagam o que já foi registrado
    if status:
        record.status = status
    parsed_date = parse_gateway_date(payment_date)
    if parsed_date is not None:
        record.payment_date = parsed_date
    if pix_transaction_id:
        record.pix_transaction_id = pix_transaction_id
    record.updated_at = datetime.utcnow()
    db.flush()
    return record
