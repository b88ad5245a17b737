# ==============================================================================
# BASE DE DATOS - Motor SQLite y transacciones con alcance
# ==============================================================================
# Un único archivo SQLite local, un único proceso escritor.
#
# TRANSACCIONES:
#   with database.transaction() as session:
#       ...  # commit al salir, rollback ante cualquier excepción
#
# El driver pysqlite no emite BEGIN antes de DDL ni soporta SAVEPOINT de
# forma fiable; por eso se desactiva su manejo implícito y SQLAlchemy emite
# BEGIN explícito. Así las migraciones (DDL) son atómicas y el upsert de
# cierres puede usar SAVEPOINT.
# ==============================================================================

import logging
import os
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Iterator, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker

from taquilla.errors import ValidationError

logger = logging.getLogger(__name__)


def now_local() -> datetime:
    """Fecha y hora local sin microsegundos (formato 'YYYY-MM-DD HH:MM:SS')."""
    return datetime.now().replace(microsecond=0)


def to_day(value: Union[date, datetime, str, None]) -> date:
    """
    Normaliza una fecha de calendario.

    Args:
        value: date, datetime, 'YYYY-MM-DD' (o ISO con hora) o None (hoy)

    Returns:
        date correspondiente

    Raises:
        ValidationError: si el texto no es una fecha ISO
    """
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()[:19]).date()
    except ValueError:
        raise ValidationError(f"Fecha inválida: {value!r}")


def start_of_day(value: Union[date, datetime, str, None]) -> datetime:
    """Medianoche del día indicado."""
    return datetime.combine(to_day(value), time.min)


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # SQLAlchemy controla BEGIN/COMMIT; el driver queda en autocommit
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """
    Acceso a la base SQLite embebida.

    Se construye una sola vez al arrancar y se inyecta en repositorios y
    servicios. Ciclo de vida explícito: Database(path) ... close().
    """

    def __init__(self, db_path: str, echo: bool = False):
        """
        Args:
            db_path: Ruta del archivo SQLite (se crea si no existe)
            echo: Mostrar SQL generado (desarrollo)
        """
        self.db_path = db_path
        folder = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(folder, exist_ok=True)

        self.engine: Engine = create_engine(f"sqlite:///{db_path}", echo=echo)
        _install_sqlite_hooks(self.engine)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        logger.info(f"Base de datos abierta: {os.path.abspath(db_path)}")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Sesión ORM dentro de una transacción.

        Commit al salir del bloque; rollback y relanzamiento ante cualquier
        error. La sesión se cierra siempre.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Conexión Core dentro de una transacción (usada por las migraciones)."""
        with self.engine.begin() as conn:
            yield conn

    def file_exists(self) -> bool:
        """True si el archivo existe y tiene contenido."""
        return os.path.exists(self.db_path) and os.path.getsize(self.db_path) > 0

    def close(self) -> None:
        """Libera el pool de conexiones."""
        self.engine.dispose()
        logger.info("Base de datos cerrada")
