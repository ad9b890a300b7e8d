# -*- coding: utf-8 -*-
"""
Modelos do livro-razão de pagamentos do Asaas: clientes, cobranças e eventos de webhook.
"""
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from src.database import Base
from datetime import datetime


class ClienteAsaas(Base):
    __tablename__ = 'asaas_customers'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False)
    asaas_customer_id = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    usuario = relationship("Usuario", back_populates="cliente_asaas")


class PagamentoAsaas(Base):
    __tablename__ = 'asaas_payments'

    id = Column(Integer, primary_key=True, index=True)

    # registration_id fica nulo quando a cobrança é a taxa de uma transferência
    registration_id = Column(Integer, ForeignKey('registrations.id'), nullable=True, index=True)
    transfer_request_id = Column(Integer, ForeignKey('transfer_requests.id'), nullable=True)

    asaas_payment_id = Column(String(50), unique=True, nullable=False, index=True)
    asaas_customer_id = Column(String(50), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    net_value = Column(Numeric(10, 2), nullable=True)
    billing_type = Column(String(20), nullable=False)
    status = Column(String(40), nullable=False) # vocabulário do Asaas: PENDING, CONFIRMED, RECEIVED, OVERDUE, REFUNDED...
    due_date = Column(Date, nullable=True)
    payment_date = Column(DateTime, nullable=True)
    payment_link = Column(String(255), nullable=True)
    invoice_url = Column(String(255), nullable=True)
    bank_slip_url = Column(String(255), nullable=True)
    external_reference = Column(String(60), nullable=True, index=True)
    pix_qr_code_id = Column(String(100), nullable=True)
    pix_qr_code = Column(Text, nullable=True)
    pix_transaction_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EventoWebhookAsaas(Base):
    __tablename__ = 'asaas_webhook_events'

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(60), nullable=False)
    asaas_payment_id = Column(String(50), nullable=True, index=True)
    registration_id = Column(Integer, nullable=True)
    transfer_request_id = Column(Integer, nullable=True)
    payload = Column(Text, nullable=False) # JSON bruto recebido
    processed = Column(Boolean, default=False, nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
