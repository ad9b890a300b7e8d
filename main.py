# -*- coding: utf-8 -*-
"""
Arquivo principal da aplicação FastAPI da plataforma de inscrições em corridas.
"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from src.config import Config
from src.exceptions import DomainError
from src.models import usuario, evento, inscricao, pagamento_asaas, transferencia, configuracao, aviso
from src.routes import (auth_fastapi, registrations_fastapi, transfer_requests_fastapi,
                        notifications_fastapi, webhooks_fastapi)

from src.database import engine, Base
import create_first_user


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

# Cria as tabelas no banco de dados
Base.metadata.create_all(bind=engine)

env = Config.ENVIRONMENT

docs_url = "/docs" if env != "production" else None
redoc_url = "/redoc" if env != "production" else None

# Inicializa a aplicação FastAPI
app = FastAPI(
    title="API Inscrições",
    description="Pagamentos, webhooks do Asaas e transferências de inscrições",
    version="1.0.0",
    docs_url=docs_url,   # Será None em produção (desativa /docs)
    redoc_url=redoc_url, # Será None em produção (desativa /redoc)
    openapi_url="/openapi.json" if env != "production" else None
)

origins = [
    Config.FRONTEND_URL,
    "http://localhost:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.error}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.error}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Montagem dos routers (transfer-requests antes de /registrations/{id})
app.include_router(webhooks_fastapi.router)
app.include_router(auth_fastapi.router)
app.include_router(transfer_requests_fastapi.router)
app.include_router(transfer_requests_fastapi.admin_router)
app.include_router(registrations_fastapi.router)
app.include_router(notifications_fastapi.router)

# Configurações do sistema e administrador inicial (ADMIN_EMAIL / ADMIN_PASSWORD)
create_first_user.create_first_user()

@app.get("/", tags=["Root"])
async def root():
    return {
        "mensagem": "API Inscrições - Pagamentos e Transferências",
        "documentacao": "/docs",
        "endpoints": [
            {"webhook_asaas": "/api/webhooks/asaas"},
            {"inscricoes": "/api/v1/registrations"},
            {"transferencias": "/api/v1/registrations/transfer-requests"},
            {"admin_transferencias": "/api/v1/admin/transfer-requests"},
            {"avisos": "/api/v1/notifications"},
        ]
    }
