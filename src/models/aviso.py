# src/models/aviso.py
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from src.database import Base
from datetime import datetime

class Aviso(Base):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    target_audience = Column(String(30), default="all") # all, runners, organizers, user
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=True) # usado quando target_audience = 'user'
    status = Column(String(20), default="published") # draft, scheduled, published
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    leituras = relationship("LeituraAviso", back_populates="aviso", cascade="all, delete-orphan")


class LeituraAviso(Base):
    __tablename__ = "announcement_reads"
    __table_args__ = (UniqueConstraint("announcement_id", "user_id"),)

    id = Column(Integer, primary_key=True, index=True)
    announcement_id = Column(Integer, ForeignKey("announcements.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    read_at = Column(DateTime, default=datetime.utcnow)

    aviso = relationship("Aviso", back_populates="leituras")
