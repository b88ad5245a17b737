# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Autenticación y CRUD de vendedores/administradores.
#
# Las contraseñas se guardan con werkzeug (generate_password_hash); nunca
# en texto plano. Un usuario con ventas o cierres no se borra: se
# desactiva. Los cambios de usuarios van al log de la aplicación, no a
# config_logs (esa tabla audita solo configuración).
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from taquilla.database import Database
from taquilla.errors import NotFoundError, UniquenessError, ValidationError, unique_violation_target
from taquilla.models.entities import DeleteResult, Rol
from taquilla.repositories.user_repository import UserRepository
from taquilla.services.validators import require_text

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_LOGIN = 'admin'
DEFAULT_ADMIN_NAME = 'Administrador'


class UserService:
    """
    Servicio de usuarios.

    Responsabilidades:
    - Autenticación (login)
    - CRUD de usuarios con baja lógica
    - Usuario administrador inicial
    """

    VALID_ROLES = frozenset(r.value for r in Rol)

    def __init__(self, database: Database, user_repo: UserRepository):
        self.database = database
        self.user_repo = user_repo

    def _validate_role(self, rol: str) -> str:
        rol = str(rol or '').strip()
        if rol not in self.VALID_ROLES:
            raise ValidationError(f"Rol inválido: {rol!r}. Opciones: vendedor, admin")
        return rol

    @staticmethod
    def _raise_if_unique(e: IntegrityError) -> None:
        if unique_violation_target(e) == 'usuario':
            raise UniquenessError('Ese nombre de usuario ya existe', field='usuario') from e

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def authenticate(self, login: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Verifica credenciales.

        Args:
            login: Nombre de usuario
            password: Contraseña en texto plano

        Returns:
            Datos del usuario (sin hash) o None si no son válidas
        """
        if not login or not password:
            return None
        with self.database.transaction() as session:
            usuario = self.user_repo.get_by_login(session, str(login).strip())
            if usuario is None or not usuario.activo:
                return None
            if not check_password_hash(usuario.password, password):
                return None
            return usuario.to_dict()

    def ensure_default_admin(self, password: str) -> bool:
        """
        Crea el usuario 'admin' si no existe.

        Returns:
            True si se creó
        """
        with self.database.transaction() as session:
            if self.user_repo.get_by_login(session, DEFAULT_ADMIN_LOGIN) is not None:
                return False
            self.user_repo.add(
                session,
                nombre=DEFAULT_ADMIN_NAME,
                usuario=DEFAULT_ADMIN_LOGIN,
                password=generate_password_hash(password),
                rol=Rol.ADMIN.value,
            )
        logger.info("Usuario administrador inicial creado")
        return True

    # =========================================================================
    # CRUD
    # =========================================================================

    def list(self) -> List[Dict[str, Any]]:
        with self.database.transaction() as session:
            return [u.to_dict() for u in self.user_repo.list_all(session)]

    def get(self, user_id: int) -> Dict[str, Any]:
        with self.database.transaction() as session:
            usuario = self.user_repo.get(session, user_id)
            if usuario is None:
                raise NotFoundError(f"Usuario {user_id} no encontrado")
            return usuario.to_dict()

    def create(self, nombre: str, usuario: str, password: str, rol: str = Rol.VENDEDOR.value) -> Dict[str, Any]:
        """
        Crea un usuario.

        Raises:
            ValidationError: datos incompletos o rol inválido
            UniquenessError: el nombre de usuario ya existe
        """
        nombre = require_text(nombre, 'El nombre')
        login = require_text(usuario, 'El usuario')
        password = require_text(password, 'La contraseña')
        rol = self._validate_role(getattr(rol, 'value', rol))

        try:
            with self.database.transaction() as session:
                created = self.user_repo.add(
                    session,
                    nombre=nombre,
                    usuario=login,
                    password=generate_password_hash(password),
                    rol=rol,
                ).to_dict()
        except IntegrityError as e:
            self._raise_if_unique(e)
            raise

        logger.info(f"Usuario creado: {login} ({rol})")
        return created

    def update(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Modifica nombre, usuario y/o rol."""
        try:
            with self.database.transaction() as session:
                usuario = self.user_repo.get(session, user_id)
                if usuario is None:
                    raise NotFoundError(f"Usuario {user_id} no encontrado")
                if 'nombre' in data:
                    usuario.nombre = require_text(data['nombre'], 'El nombre')
                if 'usuario' in data:
                    usuario.usuario = require_text(data['usuario'], 'El usuario')
                if 'rol' in data:
                    usuario.rol = self._validate_role(data['rol'])
                session.flush()
                updated = usuario.to_dict()
        except IntegrityError as e:
            self._raise_if_unique(e)
            raise

        logger.info(f"Usuario {user_id} modificado")
        return updated

    def change_password(self, user_id: int, new_password: str) -> bool:
        new_password = require_text(new_password, 'La contraseña')
        with self.database.transaction() as session:
            usuario = self.user_repo.get(session, user_id)
            if usuario is None:
                raise NotFoundError(f"Usuario {user_id} no encontrado")
            usuario.password = generate_password_hash(new_password)
        logger.info(f"Contraseña del usuario {user_id} cambiada")
        return True

    def set_active(self, user_id: int, activo: bool) -> Dict[str, Any]:
        with self.database.transaction() as session:
            usuario = self.user_repo.get(session, user_id)
            if usuario is None:
                raise NotFoundError(f"Usuario {user_id} no encontrado")
            usuario.activo = bool(activo)
            session.flush()
            updated = usuario.to_dict()
        logger.info(f"Usuario {user_id} {'activado' if activo else 'desactivado'}")
        return updated

    def delete(self, user_id: int) -> DeleteResult:
        """
        Elimina un usuario; si tiene ventas o cierres solo lo desactiva.
        """
        with self.database.transaction() as session:
            usuario = self.user_repo.get(session, user_id)
            if usuario is None:
                raise NotFoundError(f"Usuario {user_id} no encontrado")
            if self.user_repo.count_owned_records(session, user_id):
                usuario.activo = False
                result = DeleteResult(deleted=False, deactivated=True)
            else:
                self.user_repo.delete(session, user_id)
                result = DeleteResult(deleted=True)

        logger.info(f"Usuario {user_id} {'eliminado' if result.deleted else 'desactivado'}")
        return result
