# ==============================================================================
# REPOSITORIO DE CONFIGURACIÓN DEL RELAY
# ==============================================================================
# Tabla de una sola fila, fijada en id = 1.
# ==============================================================================

from typing import Optional

from sqlalchemy.orm import Session

from taquilla.models.tables import ConfigRelay
from .base import BaseRepository

RELAY_ID = 1

DEFAULT_RELAY = {
    'ip': '192.168.3.200',
    'port': 80,
    'timeout': 3000,
    'reintentos': 3,
    'modo_rele1': 'NA',
    'modo_rele2': 'NA',
    'modo_rele3': 'NA',
    'modo_rele4': 'NA',
}


class RelayRepository(BaseRepository):
    """Acceso a config_relay."""

    model = ConfigRelay

    def get_config(self, session: Session) -> Optional[ConfigRelay]:
        return self.get(session, RELAY_ID)

    def create_default(self, session: Session) -> ConfigRelay:
        return self.add(session, id=RELAY_ID, **DEFAULT_RELAY)
