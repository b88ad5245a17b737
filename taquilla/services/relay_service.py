# ==============================================================================
# SERVICIO DE CONFIGURACIÓN DEL RELAY
# ==============================================================================
# Fila única (id = 1) con la conexión al módulo de relays y el modo de
# cada canal. Se crea con valores por defecto si falta.
# ==============================================================================

import logging
from typing import Any, Dict, Optional

from taquilla.database import Database, now_local
from taquilla.errors import ValidationError
from taquilla.models.entities import AccionLog, ModoRele, TablaLog
from taquilla.repositories.relay_repository import RELAY_ID, RelayRepository
from taquilla.services.audit_service import Actor, AuditService
from taquilla.services.validators import require_int, require_ip

logger = logging.getLogger(__name__)

CHANNELS = range(1, 5)
VALID_MODES = frozenset(m.value for m in ModoRele)


def validate_relay(data: Dict[str, Any]) -> Dict[str, Any]:
    """Valida IP, puerto, timeout (ms), reintentos y modos NA/NC."""
    values = {
        'ip': require_ip(data.get('ip'), 'La IP del relay'),
        'port': require_int(data.get('port'), 'El puerto', 1, 65535),
        'timeout': require_int(data.get('timeout'), 'El timeout', 100, 30000),
        'reintentos': require_int(data.get('reintentos'), 'Los reintentos', 1, 10),
    }
    for channel in CHANNELS:
        key = f'modo_rele{channel}'
        mode = str(data.get(key) or '').strip().upper()
        if mode not in VALID_MODES:
            raise ValidationError(f"Modo inválido para el relé {channel}: debe ser NA o NC")
        values[key] = mode
    return values


class RelayService:
    """Lectura y modificación de config_relay."""

    TABLE = TablaLog.CONFIG_RELAY.value

    def __init__(self, database: Database, relay_repo: RelayRepository, audit_service: AuditService):
        self.database = database
        self.relay_repo = relay_repo
        self.audit_service = audit_service

    def ensure_default(self) -> bool:
        """
        Crea la fila por defecto si no existe.

        Returns:
            True si se creó
        """
        with self.database.transaction() as session:
            if self.relay_repo.get_config(session) is not None:
                return False
            self.relay_repo.create_default(session)
        logger.info("Configuración de relay por defecto creada")
        return True

    def get(self) -> Dict[str, Any]:
        """Configuración actual (la crea por defecto si falta)."""
        self.ensure_default()
        with self.database.transaction() as session:
            return self.relay_repo.get_config(session).to_dict()

    def update(self, data: Dict[str, Any], ip_address: Optional[str] = None,
               usuario: Actor = None) -> Dict[str, Any]:
        """
        Modifica la configuración. Los campos ausentes conservan su valor.

        Returns:
            Configuración resultante
        """
        self.ensure_default()
        with self.database.transaction() as session:
            config = self.relay_repo.get_config(session)
            before = config.to_dict()
            values = validate_relay({**before, **data})
            for key, value in values.items():
                setattr(config, key, value)
            config.fecha_actualizacion = now_local()
            session.flush()
            after = config.to_dict()

        logger.info(f"Configuración de relay actualizada: {after['ip']}:{after['port']}")
        self.audit_service.record_safe(
            AccionLog.MODIFICAR, self.TABLE, RELAY_ID,
            "Configuración de relay modificada", before=before, after=after,
            ip_address=ip_address, usuario=usuario,
        )
        return after
