# src/models/evento.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from src.database import Base

class Evento(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(150), nullable=False)
    event_date = Column(DateTime, nullable=False)
    location = Column(String(150), nullable=True)
    status = Column(String(20), default="draft") # draft, published, ongoing, finished, cancelled
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    categorias = relationship("CategoriaEvento", back_populates="evento", cascade="all, delete-orphan")
    kits = relationship("KitEvento", back_populates="evento", cascade="all, delete-orphan")
    inscricoes = relationship("Inscricao", back_populates="evento")


class CategoriaEvento(Base):
    __tablename__ = "event_categories"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    name = Column(String(100), nullable=False)
    distance = Column(String(20), nullable=True) # 5km, 10km, 21km...
    price = Column(Numeric(10, 2), nullable=False, default=0)
    max_participants = Column(Integer, nullable=True) # None = sem limite

    evento = relationship("Evento", back_populates="categorias")


class KitEvento(Base):
    __tablename__ = "event_kits"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    evento = relationship("Evento", back_populates="kits")
