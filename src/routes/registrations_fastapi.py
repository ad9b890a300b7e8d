# src/routes/registrations_fastapi.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.auth import get_current_active_user
from src.database import get_db
from src.models.usuario import Usuario
from src.schemas.inscricao import (
    InscricaoCreate, InscricaoRead, InscricaoCriada, StatusPagamentoInscricao,
    TransferenciaDireta, TransferenciaDiretaResult
)
from src.services import registrations
from src.services.asaas import get_asaas_client
from src.services.settings import get_system_settings

router = APIRouter(
    prefix="/api/v1/registrations",
    tags=["Inscrições"],
)

@router.post("", response_model=InscricaoCriada, status_code=status.HTTP_201_CREATED)
def create_registration(
    inscricao: InscricaoCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user),
    gateway=Depends(get_asaas_client)
):
    """
    Cria a inscrição do usuário logado e já gera a cobrança no Asaas.
    Se a cobrança falhar, a inscrição é devolvida mesmo assim com `payment.warning`.
    """
    result = registrations.create_registration(
        db, current_user, inscricao.event_id, inscricao.category_id,
        inscricao.kit_id, inscricao.payment_method, gateway
    )
    return {"success": True, "data": result["registration"], "payment": result["payment"]}

@router.get("/{registration_id}", response_model=InscricaoRead)
def read_registration(
    registration_id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user)
):
    return registrations.get_registration(db, current_user, registration_id)

@router.get("/{registration_id}/payment-status", response_model=StatusPagamentoInscricao)
def read_payment_status(
    registration_id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user),
    gateway=Depends(get_asaas_client)
):
    return registrations.refresh_payment_status(db, current_user, registration_id, gateway)

@router.put("/{registration_id}/transfer", response_model=TransferenciaDiretaResult)
def transfer_registration(
    registration_id: int,
    dados: TransferenciaDireta,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user)
):
    settings = get_system_settings(db)
    result = registrations.direct_transfer(db, current_user, registration_id, dados.cpf, settings)
    return {"success": True, "data": result["registration"], "message": result["message"]}
