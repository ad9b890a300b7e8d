# src/schemas/aviso.py
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class AvisoRead(BaseModel):
    id: int
    title: str
    content: str
    published_at: Optional[datetime] = None
    read: bool = False
