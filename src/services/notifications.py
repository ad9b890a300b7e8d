# -*- coding: utf-8 -*-
"""
Avisos direcionados a um usuário (tabelas announcements / announcement_reads).
"""
import logging
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from src.exceptions import NotFoundError
from src.models.aviso import Aviso, LeituraAviso

logger = logging.getLogger(__name__)


def notify_user(db: Session, user_id: int, title: str, content: str, created_by=None) -> Aviso:
    aviso = Aviso(
        title=title,
        content=content,
        target_audience="user",
        target_user_id=user_id,
        status="published",
        created_by=created_by,
        published_at=datetime.utcnow(),
    )
    db.add(aviso)
    db.flush()
    return aviso


def list_for_user(db: Session, user_id: int) -> List[dict]:
    avisos = db.query(Aviso).filter(
        Aviso.status == "published",
        (Aviso.target_user_id == user_id) | (Aviso.target_audience == "all")
    ).order_by(Aviso.created_at.desc(), Aviso.id.desc()).all()

    lidos = {
        leitura.announcement_id
        for leitura in db.query(LeituraAviso).filter(LeituraAviso.user_id == user_id).all()
    }
    return [
        {
            "id": aviso.id,
            "title": aviso.title,
            "content": aviso.content,
            "published_at": aviso.published_at,
            "read": aviso.id in lidos,
        }
        for aviso in avisos
    ]


def mark_as_read(db: Session, user_id: int, announcement_id: int) -> LeituraAviso:
    aviso = db.query(Aviso).filter(Aviso.id == announcement_id).first()
    if not aviso or (aviso.target_user_id is not None and aviso.target_user_id != user_id):
        raise NotFoundError("Aviso não encontrado")

    leitura = db.query(LeituraAviso).filter(
        LeituraAviso.announcement_id == announcement_id,
        LeituraAviso.user_id == user_id
    ).first()
    if leitura:
        return leitura

    leitura = LeituraAviso(announcement_id=announcement_id, user_id=user_id)
    db.add(leitura)
    db.commit()
    db.refresh(leitura)
    return leitura
