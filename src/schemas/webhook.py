# src/schemas/webhook.py
from pydantic import BaseModel

class WebhookResponse(BaseModel):
    success: bool = True
    message: str
