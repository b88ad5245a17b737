# ==============================================================================
# REPOSITORIO BASE - Operaciones comunes sobre una tabla ORM
# ==============================================================================
# Los repositorios no guardan estado ni abren transacciones: reciben la
# sesión activa como primer argumento. Quien abre y cierra la transacción es
# el servicio (Database.transaction()).
# ==============================================================================

from typing import Any, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session


class BaseRepository:
    """
    Acceso genérico por clave primaria.

    Las subclases definen `model` y agregan sus consultas específicas.
    """

    model = None

    def get(self, session: Session, record_id: int):
        """Fila por ID o None."""
        return session.get(self.model, record_id)

    def list_all(self, session: Session, *order_by) -> List[Any]:
        """Todas las filas, ordenadas por los criterios dados (o por id)."""
        stmt = select(self.model).order_by(*(order_by or (self.model.id,)))
        return list(session.scalars(stmt))

    def add(self, session: Session, **values):
        """
        Inserta una fila y la sincroniza con la base (obtiene su id).

        Raises:
            IntegrityError: si una restricción rechaza la fila
        """
        record = self.model(**values)
        session.add(record)
        session.flush()
        return record

    def delete(self, session: Session, record_id: int) -> int:
        """DELETE físico por ID. Retorna filas afectadas."""
        stmt = (
            delete(self.model)
            .where(self.model.id == record_id)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount

    def count(self, session: Session, *criteria) -> int:
        stmt = select(func.count()).select_from(self.model).where(*criteria)
        return session.scalar(stmt) or 0

    def find_one(self, session: Session, *criteria) -> Optional[Any]:
        return session.scalars(select(self.model).where(*criteria).limit(1)).first()
