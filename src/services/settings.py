# -*- coding: utf-8 -*-
"""
Leitura das configurações do sistema como um retrato imutável.

O retrato é lido uma vez por operação e passado explicitamente aos fluxos, de modo que
a taxa de transferência fique congelada no momento em que a solicitação é criada.
"""
from collections import namedtuple
from decimal import Decimal

from sqlalchemy.orm import Session

from src.models.configuracao import ConfiguracaoSistema

SystemSettingsSnapshot = namedtuple("SystemSettingsSnapshot", ["enabled_modules", "transfer_fee"])

DEFAULT_SETTINGS = SystemSettingsSnapshot(
    enabled_modules={"notifications": True, "transfers": False},
    transfer_fee=Decimal("0.00"),
)


def get_system_settings(db: Session) -> SystemSettingsSnapshot:
    row = db.query(ConfiguracaoSistema).order_by(ConfiguracaoSistema.id.asc()).first()
    if not row:
        return DEFAULT_SETTINGS
    return SystemSettingsSnapshot(
        enabled_modules=dict(row.enabled_modules or {}),
        transfer_fee=Decimal(str(row.transfer_fee or 0)),
    )


def transfers_enabled(settings: SystemSettingsSnapshot) -> bool:
    return bool(settings.enabled_modules.get("transfers"))
