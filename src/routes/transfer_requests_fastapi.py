# src/routes/transfer_requests_fastapi.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from src.auth import get_current_active_user, get_admin_user
from src.database import get_db
from src.models.usuario import Usuario
from src.schemas.transferencia import (
    SolicitacaoTransferenciaCreate, SolicitacaoTransferenciaDecisao,
    SolicitacaoTransferenciaRead, CobrancaTaxaTransferencia
)
from src.services import transfers
from src.services.asaas import get_asaas_client
from src.services.settings import get_system_settings

# Rotas do titular (precisam ser registradas antes de /api/v1/registrations/{id})
router = APIRouter(
    prefix="/api/v1/registrations/transfer-requests",
    tags=["Transferências"],
)

admin_router = APIRouter(
    prefix="/api/v1/admin/transfer-requests",
    tags=["Transferências (Admin)"],
)

@router.post("", response_model=SolicitacaoTransferenciaRead, status_code=status.HTTP_201_CREATED)
def create_transfer_request(
    dados: SolicitacaoTransferenciaCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user)
):
    settings = get_system_settings(db)
    return transfers.create_transfer_request(
        db, current_user, dados.registration_id, settings,
        new_runner_cpf=dados.new_runner_cpf,
        new_runner_email=dados.new_runner_email,
        reason=dados.reason,
    )

@router.get("/{transfer_request_id}", response_model=SolicitacaoTransferenciaRead)
def read_transfer_request(
    transfer_request_id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user),
    gateway=Depends(get_asaas_client)
):
    return transfers.get_transfer_request(db, current_user, transfer_request_id, gateway)

@router.post("/{transfer_request_id}/payment", response_model=CobrancaTaxaTransferencia)
def generate_transfer_payment(
    transfer_request_id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user),
    gateway=Depends(get_asaas_client)
):
    return transfers.generate_fee_payment(db, current_user, transfer_request_id, gateway)

# --- ADMIN ---

@admin_router.get("", response_model=List[SolicitacaoTransferenciaRead])
def list_transfer_requests(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: Usuario = Depends(get_admin_user)
):
    return transfers.list_transfer_requests(db, status)

@admin_router.put("/{transfer_request_id}", response_model=SolicitacaoTransferenciaRead)
def decide_transfer_request(
    transfer_request_id: int,
    decisao: SolicitacaoTransferenciaDecisao,
    db: Session = Depends(get_db),
    admin: Usuario = Depends(get_admin_user)
):
    """Aprova (e executa) ou rejeita uma solicitação de transferência."""
    return transfers.decide_transfer_request(
        db, admin, transfer_request_id, decisao.status,
        admin_notes=decisao.admin_notes,
        new_runner_id=decisao.new_runner_id,
    )
