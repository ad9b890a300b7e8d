# -*- coding: utf-8 -*-
"""
Máquina de estados do pagamento da inscrição.

Cada evento do Asaas é mapeado para um par absoluto (status, payment_status) da
inscrição. Como o alvo não depende do estado atual, reentregas e entregas fora de
ordem convergem para o mesmo resultado.
"""
import enum
import logging
from collections import namedtuple
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from src.models.inscricao import Inscricao

logger = logging.getLogger(__name__)


class WebhookEventType(str, enum.Enum):
    PAYMENT_CREATED = "PAYMENT_CREATED"
    PAYMENT_UPDATED = "PAYMENT_UPDATED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_OVERDUE = "PAYMENT_OVERDUE"
    PAYMENT_DELETED = "PAYMENT_DELETED"
    PAYMENT_RESTORED = "PAYMENT_RESTORED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    PAYMENT_CHARGEBACK_REQUESTED = "PAYMENT_CHARGEBACK_REQUESTED"
    PAYMENT_CHARGEBACK_DISPUTE = "PAYMENT_CHARGEBACK_DISPUTE"
    PAYMENT_AWAITING_CHARGEBACK_REVERSAL = "PAYMENT_AWAITING_CHARGEBACK_REVERSAL"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value) -> "WebhookEventType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class GatewayPaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    RECEIVED = "RECEIVED"
    OVERDUE = "OVERDUE"
    REFUNDED = "REFUNDED"
    RECEIVED_IN_CASH_UNDONE = "RECEIVED_IN_CASH_UNDONE"
    CHARGEBACK_REQUESTED = "CHARGEBACK_REQUESTED"
    CHARGEBACK_DISPUTE = "CHARGEBACK_DISPUTE"
    AWAITING_CHARGEBACK_REVERSAL = "AWAITING_CHARGEBACK_REVERSAL"
    DUNNING_REQUESTED = "DUNNING_REQUESTED"
    DUNNING_RECEIVED = "DUNNING_RECEIVED"
    AWAITING_RISK_ANALYSIS = "AWAITING_RISK_ANALYSIS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value) -> "GatewayPaymentStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_paid(self) -> bool:
        return self in (GatewayPaymentStatus.CONFIRMED, GatewayPaymentStatus.RECEIVED)


# status=None significa "manter o status atual da inscrição"
Transition = namedtuple("Transition", ["payment_status", "status"])

PAID = Transition("paid", "confirmed")
FAILED = Transition("failed", None)
REFUNDED = Transition("refunded", "cancelled")
STILL_PENDING = Transition("pending", None)

# Eventos direcionais: o tipo do evento basta para decidir o alvo
DIRECTIONAL_EVENTS = {
    WebhookEventType.PAYMENT_CONFIRMED: PAID,
    WebhookEventType.PAYMENT_RECEIVED: PAID,
    WebhookEventType.PAYMENT_OVERDUE: FAILED,
    WebhookEventType.PAYMENT_REFUNDED: REFUNDED,
}


def transition_for_status(gateway_status) -> Transition:
    """Deriva o alvo a partir do status atual da cobrança (PAYMENT_UPDATED e polling)."""
    status = GatewayPaymentStatus.parse(gateway_status)
    if status.is_paid:
        return PAID
    if status == GatewayPaymentStatus.OVERDUE:
        return FAILED
    if status == GatewayPaymentStatus.REFUNDED:
        return REFUNDED
    return STILL_PENDING


def next_state(event_type, gateway_status=None) -> Optional[Transition]:
    """Retorna a transição do evento ou None quando o evento não exige ação."""
    event = WebhookEventType.parse(event_type)
    if event in DIRECTIONAL_EVENTS:
        return DIRECTIONAL_EVENTS[event]
    if event == WebhookEventType.PAYMENT_UPDATED:
        return transition_for_status(gateway_status)
    return None


def apply_transition(db: Session, registration_id: int, transition: Transition) -> Optional[Inscricao]:
    """
    Grava o par alvo na inscrição (sem commit) e relê a linha para conferência.

    Inscrições transferidas não são mais alteradas pelo fluxo de pagamento.
    """
    inscricao = db.query(Inscricao).filter(Inscricao.id == registration_id).first()
    if not inscricao:
        return None

    if inscricao.status == "transferred":
        logger.warning(f"Inscrição {registration_id} já foi transferida; transição {transition} ignorada")
        return inscricao

    inscricao.payment_status = transition.payment_status
    if transition.status is not None:
        inscricao.status = transition.status
    inscricao.updated_at = datetime.utcnow()
    db.flush()

    db.refresh(inscricao)
    logger.info(f"Inscrição {registration_id} agora está status={inscricao.status} payment_status={inscricao.payment_status}")
    return inscricao
