# ==============================================================================
# MOTOR DE MIGRACIONES - Evolución del esquema al arrancar
# ==============================================================================
# Lista ordenada de migraciones versionadas. Cada una corre en su propia
# transacción y queda registrada en schema_version al terminar bien.
#
# Cada cuerpo sigue verificando el estado real (columnas, índices) antes de
# actuar: una base antigua sin schema_version parte de la versión 0 y puede
# tener ya aplicada parte de los cambios.
#
# FALLOS:
#   Una migración que falla se registra en el log y NO se marca como
#   aplicada; las demás siguen corriendo. Al final verify_schema() decide si
#   el esquema es utilizable (SchemaError → arranque fatal).
# ==============================================================================

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from sqlalchemy import inspect, select, text
from sqlalchemy.engine import Connection

from taquilla.database import Database, now_local
from taquilla.errors import SchemaError
from taquilla.models.tables import (
    Base, CierreCaja, ConfigLog, Puerta, SchemaVersion, CIERRE_UNICO_INDEX,
)

logger = logging.getLogger(__name__)

CONFIG_LOGS_ARCHIVE = 'config_logs_archivo'
CIERRES_SHADOW = 'cierres_caja_new'

# Columnas de fecha usadas por versiones viejas de config_logs
_LEGACY_LOG_DATE_COLUMNS = ('fecha', 'timestamp', 'created_at')


@dataclass
class MigrationReport:
    """Resultado de una corrida: versiones aplicadas, omitidas y fallidas."""
    applied: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


# ==============================================================================
# HELPERS DE INTROSPECCIÓN
# ==============================================================================

def table_exists(conn: Connection, table: str) -> bool:
    return inspect(conn).has_table(table)


def column_names(conn: Connection, table: str) -> Set[str]:
    return {col['name'] for col in inspect(conn).get_columns(table)}


def index_exists(conn: Connection, name: str) -> bool:
    # Los índices sobre expresiones no aparecen en get_indexes()
    row = conn.execute(
        text("SELECT 1 FROM sqlite_master WHERE type = 'index' AND name = :name"),
        {'name': name},
    ).first()
    return row is not None


def _add_column_if_missing(conn: Connection, table: str, column: str, definition: str) -> bool:
    """
    Agrega una columna si la tabla no la tiene.

    Returns:
        True si se agregó
    """
    if column in column_names(conn, table):
        return False
    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {definition}"))
    logger.info(f"Columna agregada: {table}.{column}")
    return True


def _model_index(model, name: str):
    for index in model.__table__.indexes:
        if index.name == name:
            return index
    raise KeyError(name)


# ==============================================================================
# MIGRACIONES
# ==============================================================================

def _migration_base_schema(conn: Connection) -> None:
    """Crea todas las tablas e índices declarados (solo los que faltan)."""
    Base.metadata.create_all(conn, checkfirst=True)


def _migration_ticket_lifecycle(conn: Connection) -> None:
    _add_column_if_missing(conn, 'tickets', 'impreso', 'BOOLEAN NOT NULL DEFAULT 0')
    _add_column_if_missing(conn, 'tickets', 'fecha_impresion', 'DATETIME')
    _add_column_if_missing(conn, 'tickets', 'usado', 'BOOLEAN NOT NULL DEFAULT 0')
    _add_column_if_missing(conn, 'tickets', 'fecha_uso', 'DATETIME')
    _add_column_if_missing(conn, 'tickets', 'anulado', 'BOOLEAN NOT NULL DEFAULT 0')


def _migration_door_hardware(conn: Connection) -> None:
    _add_column_if_missing(conn, 'puertas', 'descripcion', 'TEXT')
    _add_column_if_missing(conn, 'puertas', 'lector_ip', 'VARCHAR(45)')
    _add_column_if_missing(conn, 'puertas', 'lector_port', 'INTEGER DEFAULT 5000')
    _add_column_if_missing(conn, 'puertas', 'relay_number', 'INTEGER')
    _add_column_if_missing(conn, 'puertas', 'tiempo_apertura_segundos', 'INTEGER NOT NULL DEFAULT 5')


def _migration_relay_modes(conn: Connection) -> None:
    for channel in range(1, 5):
        _add_column_if_missing(conn, 'config_relay', f'modo_rele{channel}', "VARCHAR(2) NOT NULL DEFAULT 'NA'")
    _add_column_if_missing(conn, 'config_relay', 'fecha_actualizacion', 'DATETIME')


def _migration_button_columns(conn: Connection) -> None:
    _add_column_if_missing(conn, 'botones_tickets', 'cantidad', 'INTEGER NOT NULL DEFAULT 1')
    _add_column_if_missing(conn, 'botones_tickets', 'descripcion', 'TEXT')


def _migration_closure_uniqueness(conn: Connection) -> None:
    """
    Un cierre por (usuario, fecha): reconstruye cierres_caja.

    SQLite no agrega restricciones a una tabla existente, así que:
    tabla sombra → copia de la fila más reciente (mayor id) por grupo
    duplicado → DROP de la original → RENAME → índice único.
    """
    if index_exists(conn, CIERRE_UNICO_INDEX):
        return

    legacy = column_names(conn, 'cierres_caja')
    conn.execute(text(f"DROP TABLE IF EXISTS {CIERRES_SHADOW}"))
    conn.execute(text(f"""
        CREATE TABLE {CIERRES_SHADOW} (
            id INTEGER NOT NULL PRIMARY KEY,
            usuario_id INTEGER NOT NULL REFERENCES usuarios (id),
            fecha_inicio DATETIME NOT NULL,
            fecha_cierre DATETIME,
            total_ventas FLOAT NOT NULL DEFAULT 0,
            cantidad_tickets INTEGER NOT NULL DEFAULT 0,
            detalle_tipos TEXT
        )
    """))

    fallback = {
        'fecha_inicio': "COALESCE(fecha_inicio, fecha_cierre, CURRENT_TIMESTAMP)"
        if 'fecha_cierre' in legacy else "COALESCE(fecha_inicio, CURRENT_TIMESTAMP)",
        'total_ventas': "COALESCE(total_ventas, 0)",
        'cantidad_tickets': "COALESCE(cantidad_tickets, 0)",
    }
    target = [c.name for c in CierreCaja.__table__.columns if c.name in legacy]
    select_list = ', '.join(fallback.get(name, name) for name in target)

    copied = conn.execute(text(f"""
        INSERT INTO {CIERRES_SHADOW} ({', '.join(target)})
        SELECT {select_list} FROM cierres_caja
        WHERE id IN (
            SELECT MAX(id) FROM cierres_caja
            GROUP BY usuario_id, DATE(fecha_inicio)
        )
    """)).rowcount
    total = conn.execute(text("SELECT COUNT(*) FROM cierres_caja")).scalar()

    conn.execute(text("DROP TABLE cierres_caja"))
    conn.execute(text(f"ALTER TABLE {CIERRES_SHADOW} RENAME TO cierres_caja"))
    _model_index(CierreCaja, CIERRE_UNICO_INDEX).create(conn)

    if total != copied:
        logger.warning(f"Cierres duplicados descartados: {total - copied}")
    logger.info(f"cierres_caja reconstruida con índice único ({copied} filas)")


def _migration_config_logs_repair(conn: Connection) -> None:
    """
    Recrea config_logs cuando le falta fecha_hora.

    La tabla vieja se archiva con otro nombre, se crea la nueva y se intenta
    copiar. Si la copia falla, el archivo se descarta igual.
    """
    if not table_exists(conn, 'config_logs'):
        ConfigLog.__table__.create(conn)
        return
    legacy = column_names(conn, 'config_logs')
    if 'fecha_hora' in legacy:
        return

    conn.execute(text(f"DROP TABLE IF EXISTS {CONFIG_LOGS_ARCHIVE}"))
    # Los índices viajan con el RENAME y chocarían con los de la tabla nueva
    old_indexes = conn.execute(text(
        "SELECT name FROM sqlite_master "
        "WHERE type = 'index' AND tbl_name = 'config_logs' AND sql IS NOT NULL"
    )).scalars().all()
    for name in old_indexes:
        conn.execute(text(f'DROP INDEX IF EXISTS "{name}"'))

    conn.execute(text(f"ALTER TABLE config_logs RENAME TO {CONFIG_LOGS_ARCHIVE}"))
    ConfigLog.__table__.create(conn)

    date_sources = [name for name in _LEGACY_LOG_DATE_COLUMNS if name in legacy]
    fecha_expr = f"COALESCE({', '.join(date_sources + ['CURRENT_TIMESTAMP'])})"
    common = [c.name for c in ConfigLog.__table__.columns
              if c.name != 'fecha_hora' and c.name in legacy]

    if not common:
        logger.warning("config_logs antigua sin columnas compatibles, no se copian entradas")
    else:
        savepoint = conn.begin_nested()
        try:
            copied = conn.execute(text(
                f"INSERT INTO config_logs ({', '.join(common)}, fecha_hora) "
                f"SELECT {', '.join(common)}, {fecha_expr} FROM {CONFIG_LOGS_ARCHIVE}"
            )).rowcount
            savepoint.commit()
            logger.info(f"config_logs recreada, {copied} entradas copiadas")
        except Exception as e:
            savepoint.rollback()
            logger.warning(f"No se pudieron copiar las entradas antiguas de config_logs: {e}")

    conn.execute(text(f"DROP TABLE IF EXISTS {CONFIG_LOGS_ARCHIVE}"))


def _migration_door_relay_uniqueness(conn: Connection) -> None:
    if index_exists(conn, 'ux_puertas_relay_activo'):
        return
    _model_index(Puerta, 'ux_puertas_relay_activo').create(conn)


def _migration_config_logs_author(conn: Connection) -> None:
    _add_column_if_missing(conn, 'config_logs', 'usuario_id', 'INTEGER')
    _add_column_if_missing(conn, 'config_logs', 'usuario_nombre', 'VARCHAR(100)')


Migration = Tuple[int, str, Callable[[Connection], None]]

MIGRATIONS: List[Migration] = [
    (1, 'esquema_base', _migration_base_schema),
    (2, 'tickets_ciclo_de_vida', _migration_ticket_lifecycle),
    (3, 'puertas_hardware', _migration_door_hardware),
    (4, 'relay_modos_canal', _migration_relay_modes),
    (5, 'botones_cantidad_descripcion', _migration_button_columns),
    (6, 'cierres_caja_unicos', _migration_closure_uniqueness),
    (7, 'config_logs_fecha_hora', _migration_config_logs_repair),
    (8, 'puertas_relay_unico', _migration_door_relay_uniqueness),
    (9, 'config_logs_usuario', _migration_config_logs_author),
]


# ==============================================================================
# MOTOR
# ==============================================================================

class MigrationEngine:
    """
    Aplica las migraciones pendientes sobre la base.

    Uso:
        engine = MigrationEngine(database, backup_service)
        report = engine.run()
        engine.verify_schema()
    """

    def __init__(self, database: Database, backup_service=None,
                 migrations: Optional[List[Migration]] = None):
        """
        Args:
            database: Base de datos abierta
            backup_service: Servicio de backups (respaldo previo, opcional)
            migrations: Lista alternativa de migraciones (por defecto MIGRATIONS)
        """
        self.database = database
        self.backup_service = backup_service
        self.migrations = migrations if migrations is not None else MIGRATIONS

    def applied_versions(self) -> Set[int]:
        """Versiones registradas en schema_version."""
        with self.database.connection() as conn:
            SchemaVersion.__table__.create(conn, checkfirst=True)
            return set(conn.execute(select(SchemaVersion.version)).scalars())

    def current_version(self) -> int:
        applied = self.applied_versions()
        return max(applied) if applied else 0

    def pending(self) -> List[Migration]:
        applied = self.applied_versions()
        return [m for m in self.migrations if m[0] not in applied]

    def run(self) -> MigrationReport:
        """
        Ejecuta las migraciones no aplicadas, en orden de versión.

        Returns:
            MigrationReport con el detalle de la corrida
        """
        had_data = self.database.file_exists()
        applied = self.applied_versions()
        report = MigrationReport()

        todo = [m for m in sorted(self.migrations, key=lambda m: m[0]) if m[0] not in applied]
        report.skipped = sorted(v for v, _, _ in self.migrations if v in applied)
        if not todo:
            logger.info(f"Esquema al día (versión {max(applied) if applied else 0})")
            return report

        if had_data and self.backup_service is not None:
            self.backup_service.create_pre_migration_backup()

        for version, name, fn in todo:
            try:
                with self.database.connection() as conn:
                    fn(conn)
                    conn.execute(SchemaVersion.__table__.insert().values(
                        version=version, nombre=name, aplicada_en=now_local(),
                    ))
                report.applied.append(version)
                logger.info(f"Migración {version} ({name}) aplicada")
            except Exception:
                report.failed.append(version)
                logger.exception(f"Migración {version} ({name}) falló")

        return report

    def verify_schema(self) -> None:
        """
        Comprueba que existan las tablas, columnas e índices que usan los
        servicios.

        Raises:
            SchemaError: si falta algo
        """
        missing = []
        with self.database.connection() as conn:
            inspector = inspect(conn)
            for table in Base.metadata.sorted_tables:
                if not inspector.has_table(table.name):
                    missing.append(table.name)
                    continue
                present = {col['name'] for col in inspector.get_columns(table.name)}
                for column in table.columns:
                    if column.name not in present:
                        missing.append(f"{table.name}.{column.name}")
            if not index_exists(conn, CIERRE_UNICO_INDEX):
                missing.append(CIERRE_UNICO_INDEX)

        if missing:
            raise SchemaError(f"Esquema incompleto: {', '.join(missing)}")
