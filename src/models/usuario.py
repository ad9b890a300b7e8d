from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from src.database import Base
from datetime import datetime

class Usuario(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # E-mail é a chave de login (sub do token JWT)
    email = Column(String(255), unique=True, index=True, nullable=False)
    nome = Column(String(150))

    # CPF armazenado apenas com dígitos
    cpf = Column(String(14), unique=True, index=True, nullable=True)
    telefone = Column(String(20), nullable=True)

    hashed_password = Column(String, nullable=True)
    role = Column(String(20), nullable=False, default="runner") # admin, organizer, runner, pendente
    created_at = Column(DateTime, default=datetime.utcnow)

    cliente_asaas = relationship("ClienteAsaas", back_populates="usuario", uselist=False)
