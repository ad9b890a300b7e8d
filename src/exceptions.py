# -*- coding: utf-8 -*-
"""
Erros de domínio. Cada erro carrega o status HTTP, um código estável (campo `error`)
e a mensagem exibida ao usuário.
"""


class DomainError(Exception):
    status_code = 400
    error = "Bad request"
    message = "Requisição inválida"

    def __init__(self, message=None, error=None):
        if message is not None:
            self.message = message
        if error is not None:
            self.error = error
        super().__init__(self.message)

    def to_dict(self):
        return {"success": False, "error": self.error, "message": self.message}


class ValidationError(DomainError):
    status_code = 400
    error = "Validation error"
    message = "Dados inválidos"


class NotFoundError(DomainError):
    status_code = 404
    error = "Not found"
    message = "Registro não encontrado"


class ForbiddenError(DomainError):
    status_code = 403
    error = "Forbidden"
    message = "Você não tem permissão para esta operação"


class ConflictError(DomainError):
    status_code = 409
    error = "Conflict"
    message = "Operação em conflito com o estado atual"


class ModuleDisabled(ForbiddenError):
    error = "Module disabled"
    message = "O módulo de transferência está desabilitado"


class InvalidTransfer(ConflictError):
    status_code = 400
    error = "Invalid transfer"
    message = "A inscrição já pertence a este usuário"


class TransferAlreadyPending(ConflictError):
    error = "Transfer already pending"
    message = "Já existe uma solicitação de transferência em andamento para esta inscrição"


class PaymentAlreadyExists(ConflictError):
    status_code = 400
    error = "Payment already exists"
    message = "Pagamento já foi gerado para esta solicitação"


class NoFeeRequired(ConflictError):
    status_code = 400
    error = "No fee required"
    message = "Esta transferência não requer pagamento de taxa"


class NewRunnerNotFound(DomainError):
    status_code = 400
    error = "New runner not found"
    message = "Não foi possível encontrar o novo titular. Verifique o CPF ou email informado."


class NewRunnerRequired(DomainError):
    status_code = 400
    error = "New runner required"
    message = "É necessário informar o novo titular da inscrição"


class TransferFailed(DomainError):
    status_code = 500
    error = "Transfer failed"
    message = "Erro ao transferir inscrição"


class GatewayError(DomainError):
    """Falha reportada pelo Asaas (a mensagem agrega a lista `errors` da resposta)."""
    status_code = 502
    error = "Payment gateway error"
    message = "Erro na comunicação com o gateway de pagamento"

    def __init__(self, message=None, error=None, http_status=None, descriptions=None):
        super().__init__(message, error)
        self.http_status = http_status
        self.descriptions = list(descriptions or [])


class InvalidTaxId(GatewayError):
    status_code = 400
    error = "Invalid CPF"
    message = "CPF/CNPJ informado é inválido"


class TransientNetworkError(GatewayError):
    """Sem resposta do gateway (timeout/conexão). O chamador decide se tenta de novo."""
    status_code = 503
    error = "Payment gateway unavailable"
    message = "O gateway de pagamento não respondeu"
