# src/schemas/transferencia.py
from pydantic import BaseModel, EmailStr
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

class SolicitacaoTransferenciaCreate(BaseModel):
    registration_id: int
    new_runner_cpf: Optional[str] = None
    new_runner_email: Optional[EmailStr] = None
    reason: Optional[str] = None

class SolicitacaoTransferenciaDecisao(BaseModel):
    status: Literal["approved", "rejected"]
    admin_notes: Optional[str] = None
    new_runner_id: Optional[int] = None

class SolicitacaoTransferenciaRead(BaseModel):
    id: int
    registration_id: int
    requested_by: int
    new_runner_id: Optional[int] = None
    new_runner_cpf: Optional[str] = None
    new_runner_email: Optional[str] = None
    transfer_fee: Decimal
    payment_status: Optional[str] = None
    asaas_payment_id: Optional[str] = None
    status: str
    reason: Optional[str] = None
    admin_notes: Optional[str] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CobrancaTaxaTransferencia(BaseModel):
    asaas_payment_id: str
    pix_qr_code: Optional[str] = None
    pix_qr_code_id: Optional[str] = None
    payment_link: Optional[str] = None
    due_date: Optional[str] = None
    value: Optional[float] = None
