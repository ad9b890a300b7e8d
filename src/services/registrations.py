# -*- coding: utf-8 -*-
"""
Inscrições: criação com cobrança imediata, leitura por titular e transferência direta.
"""
import logging
import re
import time
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from src.auth import is_admin
from src.config import Config
from src.exceptions import (
    ForbiddenError, GatewayError, InvalidTaxId, InvalidTransfer, ModuleDisabled,
    NotFoundError, TransferAlreadyPending, ValidationError
)
from src.models.evento import Evento, CategoriaEvento, KitEvento
from src.models.inscricao import Inscricao
from src.models.transferencia import SolicitacaoTransferencia, OPEN_STATUSES
from src.models.usuario import Usuario
from src.services import ledger, notifications
from src.services.payment_state import apply_transition, transition_for_status
from src.services.settings import SystemSettingsSnapshot, transfers_enabled

logger = logging.getLogger(__name__)

OPEN_EVENT_STATUSES = ("published", "ongoing")
# Inscrições que não ocupam vaga na categoria
RELEASED_STATUSES = ("cancelled", "refunded")

BILLING_TYPES = {
    "pix": "PIX",
    "credit_card": "CREDIT_CARD",
    "boleto": "BOLETO",
}

INVALID_CPF_WARNING = (
    "CPF inválido. Atualize o CPF do seu perfil para gerar o pagamento. "
    "A inscrição foi criada e o pagamento pode ser gerado depois."
)


def only_digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def generate_confirmation_code() -> str:
    return f"REG-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"


def find_user_by_cpf_or_email(db: Session, cpf: Optional[str] = None, email: Optional[str] = None) -> Optional[Usuario]:
    """Procura primeiro pelo CPF (só dígitos) e depois pelo e-mail."""
    cpf_digits = only_digits(cpf)
    if cpf_digits:
        user = db.query(Usuario).filter(Usuario.cpf == cpf_digits).first()
        if user:
            return user

    email_normalizado = (email or "").strip().lower()
    if email_normalizado:
        return db.query(Usuario).filter(Usuario.email == email_normalizado).first()
    return None


def is_owner(inscricao: Inscricao, user: Usuario) -> bool:
    return user.id in (inscricao.runner_id, inscricao.registered_by)


def display_status(inscricao: Inscricao, viewer_id: Optional[int]) -> str:
    """
    Status exibido para quem está vendo a inscrição.

    Uma inscrição transferida aparece como 'confirmed' para o novo titular e como
    'transferred' para quem a registrou originalmente.
    """
    if inscricao.status == "transferred" and viewer_id is not None and viewer_id == inscricao.runner_id:
        return "confirmed"
    return inscricao.status


def registration_view(inscricao: Inscricao, viewer_id: Optional[int]) -> dict:
    return {
        "id": inscricao.id,
        "event_id": inscricao.event_id,
        "category_id": inscricao.category_id,
        "kit_id": inscricao.kit_id,
        "runner_id": inscricao.runner_id,
        "registered_by": inscricao.registered_by,
        "total_amount": inscricao.total_amount,
        "status": display_status(inscricao, viewer_id),
        "payment_status": inscricao.payment_status,
        "payment_method": inscricao.payment_method,
        "confirmation_code": inscricao.confirmation_code,
        "asaas_payment_id": inscricao.asaas_payment_id,
        "event_title": inscricao.evento.title if inscricao.evento else None,
        "category_name": inscricao.categoria.name if inscricao.categoria else None,
        "kit_name": inscricao.kit.name if inscricao.kit else None,
        "created_at": inscricao.created_at,
    }


def _load_registration(db: Session, registration_id: int) -> Inscricao:
    inscricao = db.query(Inscricao).options(
        joinedload(Inscricao.evento),
        joinedload(Inscricao.categoria),
        joinedload(Inscricao.kit),
    ).filter(Inscricao.id == registration_id).first()
    if not inscricao:
        raise NotFoundError("Inscrição não encontrada")
    return inscricao


def get_registration(db: Session, user: Usuario, registration_id: int) -> dict:
    inscricao = _load_registration(db, registration_id)
    organizer_id = inscricao.evento.organizer_id if inscricao.evento else None
    if not (is_owner(inscricao, user) or is_admin(user) or organizer_id == user.id):
        raise ForbiddenError("Você não tem permissão para ver esta inscrição")
    return registration_view(inscricao, user.id)


# --- CRIAÇÃO ---

def _validate_registration(db: Session, event_id: int, category_id: int, kit_id: Optional[int]):
    evento = db.query(Evento).filter(Evento.id == event_id).first()
    if not evento:
        raise NotFoundError("Evento não encontrado")
    if evento.status not in OPEN_EVENT_STATUSES:
        raise ValidationError("As inscrições para este evento não estão abertas")
    if evento.event_date <= datetime.utcnow():
        raise ValidationError("Este evento já aconteceu")

    categoria = db.query(CategoriaEvento).filter(
        CategoriaEvento.id == category_id,
        CategoriaEvento.event_id == event_id
    ).first()
    if not categoria:
        raise ValidationError("Categoria não pertence a este evento")

    if categoria.max_participants is not None:
        ocupadas = db.query(Inscricao).filter(
            Inscricao.category_id == category_id,
            Inscricao.status.notin_(RELEASED_STATUSES)
        ).count()
        if ocupadas >= categoria.max_participants:
            raise ValidationError("Não há mais vagas nesta categoria")

    kit = None
    if kit_id is not None:
        kit = db.query(KitEvento).filter(KitEvento.id == kit_id, KitEvento.event_id == event_id).first()
        if not kit:
            raise ValidationError("Kit não pertence a este evento")

    return evento, categoria, kit


def customer_payload(user: Usuario) -> dict:
    data = {
        "name": user.nome or user.email,
        "email": user.email,
        "cpfCnpj": only_digits(user.cpf),
        "externalReference": str(user.id),
    }
    if user.telefone:
        data["mobilePhone"] = only_digits(user.telefone)
    return data


def create_registration(db: Session, user: Usuario, event_id: int, category_id: int,
                        kit_id: Optional[int], payment_method: Optional[str], gateway) -> dict:
    """
    Cria a inscrição e gera a cobrança no Asaas.

    Inscrições de valor zero já nascem confirmadas e pagas. Falhas no Asaas não desfazem
    a inscrição: o retorno traz `payment.warning` e a cobrança pode ser gerada depois.
    """
    evento, categoria, kit = _validate_registration(db, event_id, category_id, kit_id)

    total_amount = Decimal(str(categoria.price or 0)) + (Decimal(str(kit.price or 0)) if kit else Decimal("0"))
    gratuita = total_amount <= 0

    inscricao = Inscricao(
        event_id=event_id,
        category_id=category_id,
        kit_id=kit_id,
        runner_id=user.id,
        registered_by=user.id,
        total_amount=total_amount,
        status="confirmed" if gratuita else "pending",
        payment_status="paid" if gratuita else "pending",
        payment_method=None if gratuita else (payment_method or "pix"),
        confirmation_code=generate_confirmation_code(),
    )
    db.add(inscricao)
    db.commit()
    db.refresh(inscricao)
    logger.info(f"Inscrição {inscricao.id} criada ({inscricao.confirmation_code}) valor={total_amount}")

    if gratuita:
        return {"registration": registration_view(inscricao, user.id), "payment": None}

    billing_type = BILLING_TYPES.get((payment_method or "pix").lower(), "PIX")
    due_date = (date.today() + timedelta(days=Config.PAYMENT_DUE_DAYS)).isoformat()
    descricao = f"Inscrição - {evento.title} - {categoria.name}"

    try:
        customer = gateway.create_customer(db, user.id, customer_payload(user))
        payment = gateway.create_payment(
            db, inscricao.id, customer["asaas_customer_id"], total_amount,
            due_date, descricao, billing_type
        )
    except InvalidTaxId as e:
        db.rollback()
        logger.warning(f"CPF inválido ao gerar pagamento da inscrição {inscricao.id}: {e.message}")
        payment = {"warning": INVALID_CPF_WARNING, "error": e.error}
    except GatewayError as e:
        db.rollback()
        logger.error(f"Erro ao gerar pagamento da inscrição {inscricao.id}: {e.message}")
        payment = {
            "warning": f"Inscrição criada, mas houve um erro ao gerar o pagamento: {e.message}",
            "error": e.error,
        }

    db.refresh(inscricao)
    return {"registration": registration_view(inscricao, user.id), "payment": payment}


# --- STATUS DO PAGAMENTO ---

def refresh_payment_status(db: Session, user: Usuario, registration_id: int, gateway) -> dict:
    """
    Consulta o Asaas e aplica o resultado na inscrição, da mesma forma que um
    webhook PAYMENT_UPDATED faria.
    """
    inscricao = _load_registration(db, registration_id)
    if not (is_owner(inscricao, user) or is_admin(user)):
        raise ForbiddenError("Você não tem permissão para ver esta inscrição")

    result = {
        "registration_id": inscricao.id,
        "gateway_status": None,
        "payment_date": None,
        "pix_qr_code": None,
        "payment_link": None,
    }

    if inscricao.asaas_payment_id:
        try:
            gateway_status = gateway.get_payment_status(db, inscricao.asaas_payment_id)
            result["gateway_status"] = gateway_status["status"]
            result["payment_date"] = gateway_status["payment_date"]
            apply_transition(db, inscricao.id, transition_for_status(gateway_status["status"]))
            db.commit()
        except GatewayError as e:
            db.rollback()
            logger.warning(f"Não foi possível consultar o pagamento da inscrição {inscricao.id}: {e.message}")
            result["warning"] = e.message

        record = ledger.find_by_gateway_id(db, inscricao.asaas_payment_id)
        if record:
            result["pix_qr_code"] = record.pix_qr_code
            result["payment_link"] = record.payment_link or record.invoice_url

    db.refresh(inscricao)
    result["status"] = display_status(inscricao, user.id)
    result["payment_status"] = inscricao.payment_status
    return result


# --- TRANSFERÊNCIA ---

def transfer_registration(db: Session, inscricao: Inscricao, new_runner_id: int) -> Inscricao:
    """Troca o titular da inscrição. Não faz commit."""
    inscricao.runner_id = new_runner_id
    inscricao.status = "transferred"
    inscricao.updated_at = datetime.utcnow()
    db.flush()
    return inscricao


def notify_transfer(db: Session, inscricao: Inscricao, previous_runner_id: int, new_runner: Usuario):
    """Avisa o titular anterior e o novo. Falhas são registradas e não desfazem a transferência."""
    evento = inscricao.evento.title if inscricao.evento else f"evento {inscricao.event_id}"
    try:
        notifications.notify_user(
            db, previous_runner_id,
            "Inscrição transferida",
            f"Sua inscrição {inscricao.confirmation_code} no {evento} foi transferida para {new_runner.nome or new_runner.email}."
        )
        notifications.notify_user(
            db, new_runner.id,
            "Você recebeu uma inscrição",
            f"A inscrição {inscricao.confirmation_code} no {evento} agora é sua."
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"Falha ao criar avisos da transferência da inscrição {inscricao.id}: {e}")


def direct_transfer(db: Session, user: Usuario, registration_id: int, cpf: str,
                    settings: SystemSettingsSnapshot) -> dict:
    """
    Transferência imediata por CPF, sem solicitação nem taxa.

    Disponível quando o módulo de transferências está desligado ou para administradores.
    """
    admin = is_admin(user)
    if transfers_enabled(settings) and not admin:
        raise ModuleDisabled("Transferências devem ser feitas por solicitação. Use a opção de solicitar transferência.")
    if not only_digits(cpf):
        raise ValidationError("CPF é obrigatório")

    inscricao = _load_registration(db, registration_id)
    if not (admin or is_owner(inscricao, user)):
        raise ForbiddenError("Você só pode transferir suas próprias inscrições")

    new_runner = find_user_by_cpf_or_email(db, cpf=cpf)
    if not new_runner:
        raise NotFoundError("Não foi encontrado um usuário com este CPF", error="User not found")
    if new_runner.id == inscricao.runner_id:
        raise InvalidTransfer()

    aberta = db.query(SolicitacaoTransferencia).filter(
        SolicitacaoTransferencia.registration_id == inscricao.id,
        SolicitacaoTransferencia.status.in_(OPEN_STATUSES)
    ).first()
    if aberta:
        raise TransferAlreadyPending()

    previous_runner_id = inscricao.runner_id
    transfer_registration(db, inscricao, new_runner.id)
    db.commit()
    db.refresh(inscricao)
    logger.info(f"Inscrição {inscricao.id} transferida diretamente de {previous_runner_id} para {new_runner.id} por {user.id}")

    notify_transfer(db, inscricao, previous_runner_id, new_runner)
    return {
        "registration": registration_view(inscricao, user.id),
        "message": f"Inscrição transferida para {new_runner.nome or new_runner.email}",
    }
