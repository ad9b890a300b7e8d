# src/models/transferencia.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from src.database import Base
from datetime import datetime

# Estados que ainda podem avançar; os demais (completed, rejected, cancelled) são terminais
OPEN_STATUSES = ("pending", "approved")

_OPEN_CLAUSE = text("status IN ('pending', 'approved')")


class SolicitacaoTransferencia(Base):
    __tablename__ = 'transfer_requests'
    # Uma única solicitação em aberto por inscrição
    __table_args__ = (
        Index(
            'uq_transfer_requests_open_registration',
            'registration_id',
            unique=True,
            sqlite_where=_OPEN_CLAUSE,
            postgresql_where=_OPEN_CLAUSE,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer, ForeignKey('registrations.id'), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey('users.id'), nullable=False)

    # Novo titular: id resolvido ou pistas (CPF/e-mail) para resolver depois
    new_runner_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    new_runner_cpf = Column(String(14), nullable=True)
    new_runner_email = Column(String(255), nullable=True)

    # Taxa copiada das configurações no momento da criação
    transfer_fee = Column(Numeric(10, 2), nullable=False, default=0)
    payment_status = Column(String(20), nullable=True) # pending, paid; nulo quando não há taxa
    asaas_payment_id = Column(String(50), nullable=True)

    status = Column(String(20), nullable=False, default="pending") # pending, approved, rejected, completed, cancelled
    reason = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    processed_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    processed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    inscricao = relationship("Inscricao")
    solicitante = relationship("Usuario", foreign_keys=[requested_by])
    novo_titular = relationship("Usuario", foreign_keys=[new_runner_id])
