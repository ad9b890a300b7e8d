# src/models/configuracao.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON
from src.database import Base
from datetime import datetime

class ConfiguracaoSistema(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    platform_name = Column(String(100), default="RaceFlow")
    enabled_modules = Column(JSON, default=dict) # ex.: {"transfers": true, "notifications": true}
    transfer_fee = Column(Numeric(10, 2), default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
