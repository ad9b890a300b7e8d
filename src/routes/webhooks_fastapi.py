# src/routes/webhooks_fastapi.py
# -*- coding: utf-8 -*-
import logging
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.config import Config
from src.database import get_db
from src.schemas.webhook import WebhookResponse
from src.services.webhooks import process_webhook

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/webhooks",
    tags=["Webhooks"],
)

def _error(status_code: int, error: str, message: str):
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, "message": message})

def _token_is_valid(request: Request) -> bool:
    expected = (Config.ASAAS_WEBHOOK_TOKEN or "").strip()
    if not expected:
        logger.warning("ASAAS_WEBHOOK_TOKEN não configurado. Permitindo requisição (apenas para desenvolvimento)")
        return True
    return request.headers.get("asaas-access-token") == expected

@router.post("/asaas", response_model=WebhookResponse)
async def asaas_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Recebe as notificações de cobrança do Asaas.

    Só responde erro para token inválido (401) ou payload malformado (400); qualquer
    problema de negócio fica registrado no evento e o Asaas recebe 200.
    """
    if not _token_is_valid(request):
        logger.error("Webhook do Asaas com token ausente ou inválido")
        return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized", "Invalid webhook token")

    try:
        payload = await request.json()
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, "Bad request", "Event and payment are required")

    payment = payload.get("payment") if isinstance(payload, dict) else None
    if not isinstance(payload, dict) or not payload.get("event") or not isinstance(payment, dict) or not payment.get("id"):
        return _error(status.HTTP_400_BAD_REQUEST, "Bad request", "Event and payment are required")

    message = process_webhook(db, payload)
    return {"success": True, "message": message}
