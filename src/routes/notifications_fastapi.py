# src/routes/notifications_fastapi.py
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.auth import get_current_active_user
from src.database import get_db
from src.models.usuario import Usuario
from src.schemas.aviso import AvisoRead
from src.services import notifications

router = APIRouter(
    prefix="/api/v1/notifications",
    tags=["Avisos"],
)

@router.get("", response_model=List[AvisoRead])
def list_notifications(db: Session = Depends(get_db), current_user: Usuario = Depends(get_current_active_user)):
    return notifications.list_for_user(db, current_user.id)

@router.post("/{announcement_id}/read")
def mark_notification_read(
    announcement_id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user)
):
    notifications.mark_as_read(db, current_user.id, announcement_id)
    return {"success": True}
