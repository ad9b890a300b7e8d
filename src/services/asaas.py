# -*- coding: utf-8 -*-
"""
Cliente da API REST do Asaas (clientes, cobranças, QR Code PIX e consulta de status).

Toda falha HTTP vira GatewayError com a mensagem montada a partir da lista `errors`
devolvida pelo Asaas; falta de resposta (timeout/conexão) vira TransientNetworkError.
"""
import logging
import time
from typing import Optional

import requests
from sqlalchemy.orm import Session

from src.config import Config
from src.exceptions import GatewayError, InvalidTaxId, PaymentAlreadyExists, TransientNetworkError
from src.models.inscricao import Inscricao
from src.models.pagamento_asaas import ClienteAsaas
from src.services import ledger

logger = logging.getLogger(__name__)


def _error_descriptions(data) -> list:
    if not isinstance(data, dict):
        return []
    errors = data.get("errors") or []
    return [e.get("description", "") for e in errors if isinstance(e, dict)]


def _is_invalid_tax_id(descriptions) -> bool:
    joined = ", ".join(descriptions)
    lowered = joined.lower()
    return "CPF/CNPJ informado é inválido" in joined or ("cpf" in lowered and "inválido" in lowered)


def _qr_from_payment_fields(payment: dict):
    """Procura o QR Code nos próprios campos da cobrança (fallback do endpoint /pixQrCode)."""
    pix_transaction = payment.get("pixTransaction") or {}
    if not isinstance(pix_transaction, dict):
        pix_transaction = {}
    payload = (
        payment.get("pixQrCode")
        or pix_transaction.get("payload")
        or pix_transaction.get("qrCode")
        or payment.get("qrCode")
    )
    if not payload:
        return None, None
    return payload, payment.get("pixQrCodeId") or pix_transaction.get("id")


class AsaasClient:

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, session=None, sleep=time.sleep):
        self.api_key = api_key if api_key is not None else Config.ASAAS_API_KEY
        self.base_url = (base_url or Config.asaas_base_url()).rstrip("/")
        self.timeout = timeout or Config.ASAAS_TIMEOUT
        self.sleep = sleep

        self.qr_max_attempts = Config.ASAAS_QR_MAX_ATTEMPTS
        self.qr_initial_wait = Config.ASAAS_QR_INITIAL_WAIT
        self.qr_backoff_step = Config.ASAAS_QR_BACKOFF_STEP
        self.qr_backoff_ceiling = Config.ASAAS_QR_BACKOFF_CEILING

        if not self.api_key:
            logger.error("ASAAS_API_KEY não configurada no ambiente.")

        self.session = session or requests.Session()
        self.session.headers.update({
            "access_token": self.api_key or "",
            "Content-Type": "application/json",
        })

    # --- HTTP ---

    def _request(self, method: str, path: str, params=None, json=None) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"Asaas API Request: {method} {path}")
        try:
            response = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.error(f"Asaas API sem resposta: {method} {path} - {e}")
            raise TransientNetworkError(f"O Asaas não respondeu: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Erro na requisição ao Asaas: {method} {path} - {e}")
            raise GatewayError(f"Erro na requisição ao Asaas: {e}") from e

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}

        if response.status_code >= 400:
            descriptions = _error_descriptions(data)
            logger.error(f"Asaas API Error: {response.status_code} {path} - {data}")
            message = ", ".join(descriptions) if descriptions else f"HTTP {response.status_code}"
            raise GatewayError(message, http_status=response.status_code, descriptions=descriptions)

        logger.info(f"Asaas API Response: {response.status_code} {path}")
        return data

    # --- CLIENTES ---

    def get_customer_by_user_id(self, db: Session, user_id: int) -> Optional[str]:
        mapping = db.query(ClienteAsaas).filter(ClienteAsaas.user_id == user_id).first()
        return mapping.asaas_customer_id if mapping else None

    def create_customer(self, db: Session, user_id: int, customer_data: dict) -> dict:
        """
        Busca ou cria o cliente do usuário no Asaas.

        Ordem: mapeamento local -> busca por CPF/CNPJ no Asaas -> criação.
        Retorna {"asaas_customer_id": ..., "created": bool}.
        """
        existing = self.get_customer_by_user_id(db, user_id)
        if existing:
            logger.info(f"Cliente Asaas já existe para user_id: {user_id}")
            return {"asaas_customer_id": existing, "created": False}

        cpf_cnpj = customer_data.get("cpfCnpj")
        if cpf_cnpj:
            try:
                found = self._request("GET", "/customers", params={"cpfCnpj": cpf_cnpj})
                customers = found.get("data") or []
                if customers:
                    asaas_customer_id = customers[0]["id"]
                    logger.info(f"Cliente já existe no Asaas: {asaas_customer_id}")
                    self._save_customer(db, user_id, asaas_customer_id)
                    return {"asaas_customer_id": asaas_customer_id, "created": False}
            except GatewayError as e:
                # Se a busca falhar, segue para a criação
                logger.warning(f"Erro ao buscar cliente no Asaas, criando novo: {e.message}")

        try:
            created = self._request("POST", "/customers", json=customer_data)
        except TransientNetworkError:
            raise
        except GatewayError as e:
            if _is_invalid_tax_id(e.descriptions):
                raise InvalidTaxId(http_status=e.http_status, descriptions=e.descriptions) from e
            raise GatewayError(f"Erro ao criar cliente no Asaas: {e.message}",
                               http_status=e.http_status, descriptions=e.descriptions) from e

        self._save_customer(db, user_id, created["id"])
        logger.info(f"Cliente criado no Asaas: {created['id']}")
        return {"asaas_customer_id": created["id"], "created": True}

    def _save_customer(self, db: Session, user_id: int, asaas_customer_id: str):
        db.add(ClienteAsaas(user_id=user_id, asaas_customer_id=asaas_customer_id))
        db.commit()

    # --- COBRANÇAS ---

    def create_payment(self, db: Session, registration_id: int, customer_id: str, value,
                       due_date: str, description: str, billing_type: str = "PIX",
                       external_reference: Optional[str] = None) -> dict:
        """Cria a cobrança de uma inscrição e vincula o id do Asaas à inscrição."""
        active = ledger.active_for_registration(db, registration_id)
        if active:
            raise PaymentAlreadyExists(f"A inscrição já possui a cobrança ativa {active.asaas_payment_id}")

        reference = external_reference or ledger.registration_reference(registration_id)
        payment, pix_qr_code, pix_qr_code_id = self._create_gateway_payment(
            customer_id, value, due_date, description, billing_type, reference,
            error_prefix="Erro ao criar pagamento no Asaas"
        )

        ledger.record_payment(
            db, payment, customer_id,
            registration_id=registration_id,
            pix_qr_code=pix_qr_code,
            pix_qr_code_id=pix_qr_code_id,
        )
        inscricao = db.query(Inscricao).filter(Inscricao.id == registration_id).first()
        if inscricao:
            inscricao.asaas_payment_id = payment["id"]
        db.commit()

        return self._payment_result(payment, pix_qr_code, pix_qr_code_id)

    def create_transfer_payment(self, db: Session, transfer_request_id: int, customer_id: str, value,
                                due_date: str, description: str, billing_type: str = "PIX",
                                external_reference: Optional[str] = None) -> dict:
        """Cria a cobrança da taxa de transferência. Não altera nenhuma inscrição."""
        reference = external_reference or ledger.transfer_reference(transfer_request_id)
        payment, pix_qr_code, pix_qr_code_id = self._create_gateway_payment(
            customer_id, value, due_date, description, billing_type, reference,
            error_prefix="Erro ao criar pagamento de transferência no Asaas"
        )

        ledger.record_payment(
            db, payment, customer_id,
            transfer_request_id=transfer_request_id,
            pix_qr_code=pix_qr_code,
            pix_qr_code_id=pix_qr_code_id,
        )
        db.commit()
        logger.info(f"Pagamento de transferência {payment['id']} salvo no banco de dados")

        return self._payment_result(payment, pix_qr_code, pix_qr_code_id)

    def _create_gateway_payment(self, customer_id, value, due_date, description, billing_type,
                                reference, error_prefix):
        payment_request = {
            "customer": customer_id,
            "billingType": billing_type,
            "value": float(value),
            "dueDate": due_date,
            "description": description,
            "externalReference": reference,
            "installmentCount": 1,
            "installmentValue": float(value),
        }
        logger.info(f"Criando pagamento no Asaas: ref={reference} valor={value} tipo={billing_type} vencimento={due_date}")

        try:
            payment = self._request("POST", "/payments", json=payment_request)
        except TransientNetworkError:
            raise
        except GatewayError as e:
            raise GatewayError(f"{error_prefix}: {e.message}",
                               http_status=e.http_status, descriptions=e.descriptions) from e

        pix_qr_code, pix_qr_code_id = None, None
        if billing_type == "PIX":
            if payment.get("pixQrCode"):
                pix_qr_code = payment["pixQrCode"]
                pix_qr_code_id = payment.get("pixQrCodeId")
                logger.info("QR Code PIX já disponível na resposta inicial")
            else:
                pix_qr_code, pix_qr_code_id = self.fetch_pix_qr_code(payment["id"])

        return payment, pix_qr_code, pix_qr_code_id

    def fetch_pix_qr_code(self, asaas_payment_id: str):
        """
        Busca o QR Code PIX de uma cobrança recém-criada.

        Espera inicial de 2s e até 5 tentativas com espera crescente (2s, 4s, 6s, 8s).
        Retorna (None, None) se o QR Code não ficar pronto; ele será preenchido
        depois pela consulta de status.
        """
        self.sleep(self.qr_initial_wait)

        for attempt in range(1, self.qr_max_attempts + 1):
            try:
                payment = self._request("GET", f"/payments/{asaas_payment_id}")

                try:
                    qr_data = self._request("GET", f"/payments/{asaas_payment_id}/pixQrCode")
                    if qr_data.get("payload"):
                        logger.info(f"QR Code PIX obtido via /pixQrCode (tentativa {attempt})")
                        return qr_data["payload"], qr_data.get("id") or payment.get("pixQrCodeId")
                except GatewayError as e:
                    logger.warning(f"Erro ao obter QR Code via /pixQrCode: {e.message}")

                payload, qr_code_id = _qr_from_payment_fields(payment)
                if payload:
                    logger.info(f"QR Code PIX obtido nos campos da cobrança (tentativa {attempt})")
                    return payload, qr_code_id
            except GatewayError as e:
                logger.error(f"Erro ao buscar QR Code (tentativa {attempt}/{self.qr_max_attempts}): {e.message}")

            if attempt < self.qr_max_attempts:
                wait = min(attempt * self.qr_backoff_step, self.qr_backoff_ceiling)
                logger.info(f"QR Code ainda não disponível, nova tentativa em {wait:g}s ({attempt}/{self.qr_max_attempts})")
                self.sleep(wait)

        logger.warning(f"QR Code PIX da cobrança {asaas_payment_id} não disponível após {self.qr_max_attempts} tentativas")
        return None, None

    @staticmethod
    def _payment_result(payment: dict, pix_qr_code, pix_qr_code_id) -> dict:
        return {
            "asaas_payment_id": payment["id"],
            "payment_link": payment.get("paymentLink") or payment.get("invoiceUrl"),
            "pix_qr_code": pix_qr_code,
            "pix_qr_code_id": pix_qr_code_id,
            "status": payment.get("status"),
            "value": payment.get("value"),
            "net_value": payment.get("netValue"),
            "due_date": payment.get("dueDate"),
        }

    # --- STATUS ---

    def get_payment_by_registration_id(self, db: Session, registration_id: int):
        return ledger.latest_for_registration(db, registration_id)

    def get_payment_status(self, db: Session, asaas_payment_id: str) -> dict:
        """Consulta o status atual no Asaas e atualiza o livro-razão."""
        logger.info(f"Consultando status do pagamento: {asaas_payment_id}")
        try:
            payment = self._request("GET", f"/payments/{asaas_payment_id}")
        except TransientNetworkError:
            raise
        except GatewayError as e:
            raise GatewayError(f"Erro ao consultar status do pagamento: {e.message}",
                               http_status=e.http_status, descriptions=e.descriptions) from e

        record = ledger.mirror_gateway_status(
            db, asaas_payment_id, payment.get("status"),
            payment.get("paymentDate"), payment.get("pixTransactionId")
        )
        if record and payment.get("billingType") == "PIX" and payment.get("pixQrCode") and not record.pix_qr_code:
            record.pix_qr_code = payment["pixQrCode"]
            record.pix_qr_code_id = payment.get("pixQrCodeId")
            logger.info(f"QR Code PIX da cobrança {asaas_payment_id} atualizado no banco de dados")
        db.commit()

        return {
            "status": payment.get("status"),
            "payment_date": payment.get("paymentDate"),
            "pix_transaction_id": payment.get("pixTransactionId"),
        }


def get_asaas_client():
    """Dependência FastAPI; substituída nos testes por um cliente falso."""
    return AsaasClient()
