# -*- coding: utf-8 -*-
"""
Solicitações de transferência de inscrição.

Fluxo: criação -> (taxa paga, se houver) -> decisão do admin -> execução.
A execução tem um único caminho, `execute_if_not_completed`, usado tanto pela
aprovação do admin quanto pela transferência automática do webhook.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.auth import is_admin
from src.config import Config
from src.exceptions import (
    ConflictError, ForbiddenError, GatewayError, InvalidTransfer, ModuleDisabled,
    NewRunnerNotFound, NewRunnerRequired, NoFeeRequired, NotFoundError,
    PaymentAlreadyExists, TransferAlreadyPending, TransferFailed, ValidationError
)
from src.models.inscricao import Inscricao
from src.models.transferencia import SolicitacaoTransferencia, OPEN_STATUSES
from src.models.usuario import Usuario
from src.services.payment_state import GatewayPaymentStatus
from src.services.registrations import (
    customer_payload, find_user_by_cpf_or_email, is_owner, notify_transfer,
    only_digits, transfer_registration
)
from src.services.settings import SystemSettingsSnapshot, transfers_enabled

logger = logging.getLogger(__name__)


def _get_or_404(db: Session, transfer_request_id: int) -> SolicitacaoTransferencia:
    solicitacao = db.query(SolicitacaoTransferencia).filter(
        SolicitacaoTransferencia.id == transfer_request_id
    ).first()
    if not solicitacao:
        raise NotFoundError("Solicitação de transferência não encontrada", error="Transfer request not found")
    return solicitacao


def _guarded_update(db: Session, transfer_request_id: int, allowed_statuses, values: dict) -> bool:
    """UPDATE condicional ao status atual. Retorna False se nenhuma linha foi alterada."""
    values = dict(values, updated_at=datetime.utcnow())
    rows = db.query(SolicitacaoTransferencia).filter(
        SolicitacaoTransferencia.id == transfer_request_id,
        SolicitacaoTransferencia.status.in_(allowed_statuses)
    ).update(values, synchronize_session=False)
    return rows > 0


def resolve_new_runner(db: Session, solicitacao: SolicitacaoTransferencia) -> Optional[Usuario]:
    """Resolve o novo titular pelo id já gravado ou pelas pistas de CPF/e-mail."""
    if solicitacao.new_runner_id:
        return db.query(Usuario).filter(Usuario.id == solicitacao.new_runner_id).first()
    if not (solicitacao.new_runner_cpf or solicitacao.new_runner_email):
        return None
    return find_user_by_cpf_or_email(db, solicitacao.new_runner_cpf, solicitacao.new_runner_email)


# --- CRIAÇÃO ---

def create_transfer_request(db: Session, user: Usuario, registration_id: int,
                            settings: SystemSettingsSnapshot,
                            new_runner_cpf: Optional[str] = None,
                            new_runner_email: Optional[str] = None,
                            reason: Optional[str] = None) -> SolicitacaoTransferencia:
    new_runner_cpf = only_digits(new_runner_cpf) or None
    new_runner_email = (new_runner_email or "").strip().lower() or None
    if not new_runner_cpf and not new_runner_email:
        raise ValidationError("Informe o CPF ou email do novo titular", error="CPF or email is required")

    inscricao = db.query(Inscricao).filter(Inscricao.id == registration_id).first()
    if not inscricao:
        raise NotFoundError("Inscrição não encontrada", error="Registration not found")

    if not (is_owner(inscricao, user) or is_admin(user)):
        raise ForbiddenError("Você só pode solicitar transferência de suas próprias inscrições")

    if not transfers_enabled(settings):
        raise ModuleDisabled()

    new_runner = find_user_by_cpf_or_email(db, new_runner_cpf, new_runner_email)
    if new_runner and new_runner.id == inscricao.runner_id:
        raise InvalidTransfer()

    aberta = db.query(SolicitacaoTransferencia).filter(
        SolicitacaoTransferencia.registration_id == registration_id,
        SolicitacaoTransferencia.status.in_(OPEN_STATUSES)
    ).first()
    if aberta:
        raise TransferAlreadyPending()

    # Taxa congelada no momento da criação
    transfer_fee = Decimal(str(settings.transfer_fee or 0))

    solicitacao = SolicitacaoTransferencia(
        registration_id=registration_id,
        requested_by=user.id,
        new_runner_id=new_runner.id if new_runner else None,
        new_runner_cpf=new_runner_cpf,
        new_runner_email=new_runner_email,
        transfer_fee=transfer_fee,
        payment_status="pending" if transfer_fee > 0 else None,
        status="pending",
        reason=reason,
    )
    db.add(solicitacao)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise TransferAlreadyPending()
    db.refresh(solicitacao)
    logger.info(f"Solicitação de transferência {solicitacao.id} criada para a inscrição {registration_id} (taxa={transfer_fee})")
    return solicitacao


# --- TAXA ---

def generate_fee_payment(db: Session, user: Usuario, transfer_request_id: int, gateway) -> dict:
    """Gera a cobrança PIX da taxa de transferência para quem está pagando."""
    solicitacao = _get_or_404(db, transfer_request_id)

    if not (solicitacao.requested_by == user.id or is_admin(user)):
        raise ForbiddenError("Você não tem permissão para gerar pagamento desta solicitação")
    if solicitacao.asaas_payment_id:
        raise PaymentAlreadyExists()
    if Decimal(str(solicitacao.transfer_fee or 0)) <= 0:
        raise NoFeeRequired()
    if solicitacao.status not in OPEN_STATUSES:
        raise ConflictError("Esta solicitação já foi processada")

    customer_id = gateway.get_customer_by_user_id(db, user.id)
    if not customer_id:
        customer_id = gateway.create_customer(db, user.id, customer_payload(user))["asaas_customer_id"]

    inscricao = solicitacao.inscricao
    evento = inscricao.evento.title if inscricao and inscricao.evento else "Evento"
    due_date = (date.today() + timedelta(days=Config.PAYMENT_DUE_DAYS)).isoformat()

    payment = gateway.create_transfer_payment(
        db, solicitacao.id, customer_id, solicitacao.transfer_fee,
        due_date, f"Taxa de Transferência - {evento}", "PIX"
    )

    solicitacao.asaas_payment_id = payment["asaas_payment_id"]
    solicitacao.payment_status = "pending"
    db.commit()
    logger.info(f"Cobrança {payment['asaas_payment_id']} gerada para a solicitação {solicitacao.id}")

    return {
        "asaas_payment_id": payment["asaas_payment_id"],
        "pix_qr_code": payment["pix_qr_code"],
        "pix_qr_code_id": payment["pix_qr_code_id"],
        "payment_link": payment["payment_link"],
        "due_date": payment["due_date"],
        "value": payment["value"],
    }


# --- LEITURA ---

def get_transfer_request(db: Session, user: Usuario, transfer_request_id: int, gateway) -> SolicitacaoTransferencia:
    """
    Retorna a solicitação. Se a taxa ainda consta como pendente, consulta o Asaas
    diretamente para não depender só da chegada do webhook.
    """
    solicitacao = _get_or_404(db, transfer_request_id)
    if not (solicitacao.requested_by == user.id or is_admin(user)):
        raise ForbiddenError("Você não tem permissão para visualizar esta solicitação")

    if solicitacao.payment_status == "pending" and solicitacao.asaas_payment_id:
        try:
            logger.info(f"Consultando Asaas diretamente para a transferência {solicitacao.id}: {solicitacao.asaas_payment_id}")
            status = gateway.get_payment_status(db, solicitacao.asaas_payment_id)
            if GatewayPaymentStatus.parse(status["status"]).is_paid:
                solicitacao.payment_status = "paid"
                db.commit()
                logger.info(f"Taxa da transferência {solicitacao.id} confirmada no Asaas")
        except GatewayError as e:
            db.rollback()
            logger.warning(f"Erro ao consultar Asaas (mantendo status do banco): {e.message}")
        db.refresh(solicitacao)

    return solicitacao


def list_transfer_requests(db: Session, status: Optional[str] = None) -> List[SolicitacaoTransferencia]:
    query = db.query(SolicitacaoTransferencia)
    if status:
        query = query.filter(SolicitacaoTransferencia.status == status)
    return query.order_by(SolicitacaoTransferencia.created_at.desc(), SolicitacaoTransferencia.id.desc()).all()


# --- EXECUÇÃO ---

def execute_if_not_completed(db: Session, transfer_request_id: int, new_runner_id: int) -> bool:
    """
    Conclui a solicitação e troca o titular da inscrição na mesma transação.

    O UPDATE só casa com solicitações ainda abertas, então entre dois chamadores
    concorrentes apenas um altera a inscrição. Retorna False quando a solicitação já
    estava concluída (ou rejeitada) e nada foi feito.
    """
    try:
        now = datetime.utcnow()
        swapped = _guarded_update(db, transfer_request_id, OPEN_STATUSES, {
            "status": "completed",
            "new_runner_id": new_runner_id,
            "processed_at": now,
        })
        if not swapped:
            db.rollback()
            logger.info(f"Solicitação {transfer_request_id} já processada; transferência não executada novamente")
            return False

        registration_id = db.query(SolicitacaoTransferencia.registration_id).filter(
            SolicitacaoTransferencia.id == transfer_request_id
        ).scalar()
        inscricao = db.query(Inscricao).filter(Inscricao.id == registration_id).first()
        if not inscricao:
            raise NotFoundError("Inscrição não encontrada", error="Registration not found")

        previous_runner_id = inscricao.runner_id
        transfer_registration(db, inscricao, new_runner_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Inscrição {registration_id} transferida de {previous_runner_id} para {new_runner_id} (solicitação {transfer_request_id})")
    return True


# --- DECISÃO DO ADMIN ---

def decide_transfer_request(db: Session, admin: Usuario, transfer_request_id: int, status: str,
                            admin_notes: Optional[str] = None,
                            new_runner_id: Optional[int] = None) -> SolicitacaoTransferencia:
    solicitacao = _get_or_404(db, transfer_request_id)
    now = datetime.utcnow()

    if status == "rejected":
        rejected = _guarded_update(db, solicitacao.id, OPEN_STATUSES, {
            "status": "rejected",
            "admin_notes": admin_notes,
            "processed_by": admin.id,
            "processed_at": now,
        })
        if not rejected:
            db.rollback()
            raise ConflictError("Esta solicitação já foi processada")
        db.commit()
        logger.info(f"Solicitação {solicitacao.id} rejeitada por {admin.id}")
        db.refresh(solicitacao)
        return solicitacao

    if status != "approved":
        raise ValidationError("Status deve ser 'approved' ou 'rejected'")

    if new_runner_id:
        new_runner = db.query(Usuario).filter(Usuario.id == new_runner_id).first()
        if not new_runner:
            raise NewRunnerNotFound()
    else:
        if not (solicitacao.new_runner_id or solicitacao.new_runner_cpf or solicitacao.new_runner_email):
            raise NewRunnerRequired()
        new_runner = resolve_new_runner(db, solicitacao)
        if not new_runner:
            raise NewRunnerNotFound()

    inscricao = solicitacao.inscricao
    if inscricao and new_runner.id == inscricao.runner_id:
        raise InvalidTransfer()
    previous_runner_id = inscricao.runner_id if inscricao else None

    approved = _guarded_update(db, solicitacao.id, OPEN_STATUSES, {
        "status": "approved",
        "admin_notes": admin_notes,
        "processed_by": admin.id,
        "processed_at": now,
        "new_runner_id": new_runner.id,
    })
    if not approved:
        db.rollback()
        raise ConflictError("Esta solicitação já foi processada")
    db.commit()

    try:
        executed = execute_if_not_completed(db, solicitacao.id, new_runner.id)
    except Exception as e:
        logger.error(f"Erro ao transferir inscrição da solicitação {solicitacao.id}: {e}")
        # A decisão só vale depois que a troca de titular foi gravada
        _guarded_update(db, solicitacao.id, ("approved",), {"status": "pending"})
        db.commit()
        raise TransferFailed(f"Erro ao transferir inscrição: {e}") from e

    db.refresh(solicitacao)
    if executed:
        logger.info(f"Solicitação {solicitacao.id} aprovada por {admin.id} e concluída")
        notify_transfer(db, solicitacao.inscricao, previous_runner_id, new_runner)
        db.refresh(solicitacao)
    return solicitacao
