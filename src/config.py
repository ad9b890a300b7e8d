# -*- coding: utf-8 -*-
"""
Configuração da aplicação lida das variáveis de ambiente (arquivo .env opcional).
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

    # --- ASAAS ---
    ASAAS_API_KEY = os.environ.get("ASAAS_API_KEY")
    ASAAS_ENVIRONMENT = os.environ.get("ASAAS_ENVIRONMENT", "sandbox")
    ASAAS_API_URL = os.environ.get("ASAAS_API_URL")
    ASAAS_WEBHOOK_TOKEN = os.environ.get("ASAAS_WEBHOOK_TOKEN", "")
    ASAAS_TIMEOUT = float(os.environ.get("ASAAS_TIMEOUT", "30"))

    # Busca do QR Code PIX: 2s de espera inicial, até 5 tentativas (2s, 4s, 6s, 8s)
    ASAAS_QR_MAX_ATTEMPTS = int(os.environ.get("ASAAS_QR_MAX_ATTEMPTS", "5"))
    ASAAS_QR_INITIAL_WAIT = float(os.environ.get("ASAAS_QR_INITIAL_WAIT", "2"))
    ASAAS_QR_BACKOFF_STEP = float(os.environ.get("ASAAS_QR_BACKOFF_STEP", "2"))
    ASAAS_QR_BACKOFF_CEILING = float(os.environ.get("ASAAS_QR_BACKOFF_CEILING", "8"))

    # Vencimento das cobranças geradas (inscrição e taxa de transferência)
    PAYMENT_DUE_DAYS = int(os.environ.get("PAYMENT_DUE_DAYS", "3"))

    @classmethod
    def asaas_base_url(cls):
        if cls.ASAAS_API_URL:
            return cls.ASAAS_API_URL.rstrip("/")
        if cls.ASAAS_ENVIRONMENT == "production":
            return "https://www.asaas.com/api/v3"
        return "https://sandbox.asaas.com/api/v3"
