# src/models/inscricao.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from src.database import Base
from datetime import datetime

class Inscricao(Base):
    __tablename__ = 'registrations'

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id'), nullable=False)
    category_id = Column(Integer, ForeignKey('event_categories.id'), nullable=False)
    kit_id = Column(Integer, ForeignKey('event_kits.id'), nullable=True)

    # runner_id = titular atual; registered_by = quem criou/pagou a inscrição
    runner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    registered_by = Column(Integer, ForeignKey('users.id'), nullable=False)

    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), default="pending") # pending, confirmed, cancelled, refund_requested, refunded, transferred
    payment_status = Column(String(20), default="pending") # pending, paid, refunded, failed
    payment_method = Column(String(20), nullable=True) # pix, credit_card, boleto
    confirmation_code = Column(String(40), unique=True, nullable=False)
    asaas_payment_id = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    evento = relationship("Evento", back_populates="inscricoes")
    categoria = relationship("CategoriaEvento")
    kit = relationship("KitEvento")
    runner = relationship("Usuario", foreign_keys=[runner_id])
