# src/schemas/inscricao.py
from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

class InscricaoCreate(BaseModel):
    event_id: int
    category_id: int
    kit_id: Optional[int] = None
    payment_method: Optional[Literal["pix", "credit_card", "boleto"]] = "pix"

class InscricaoRead(BaseModel):
    id: int
    event_id: int
    category_id: int
    kit_id: Optional[int] = None
    runner_id: int
    registered_by: int
    total_amount: Decimal
    status: str # já projetado para quem está vendo
    payment_status: str
    payment_method: Optional[str] = None
    confirmation_code: str
    asaas_payment_id: Optional[str] = None
    event_title: Optional[str] = None
    category_name: Optional[str] = None
    kit_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PagamentoGerado(BaseModel):
    asaas_payment_id: Optional[str] = None
    payment_link: Optional[str] = None
    pix_qr_code: Optional[str] = None
    pix_qr_code_id: Optional[str] = None
    status: Optional[str] = None
    value: Optional[float] = None
    net_value: Optional[float] = None
    due_date: Optional[str] = None
    # Preenchido quando a inscrição foi criada mas a cobrança falhou
    warning: Optional[str] = None
    error: Optional[str] = None

class InscricaoCriada(BaseModel):
    success: bool = True
    data: InscricaoRead
    payment: Optional[PagamentoGerado] = None

class StatusPagamentoInscricao(BaseModel):
    registration_id: int
    status: str
    payment_status: str
    gateway_status: Optional[str] = None
    payment_date: Optional[str] = None
    pix_qr_code: Optional[str] = None
    payment_link: Optional[str] = None
    warning: Optional[str] = None

class TransferenciaDireta(BaseModel):
    cpf: str = Field(..., min_length=1)

class TransferenciaDiretaResult(BaseModel):
    success: bool = True
    data: InscricaoRead
    message: str
