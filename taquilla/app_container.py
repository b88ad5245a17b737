# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Se construye una vez al arrancar con la configuración y se pasa a quien
# lo necesite (la app Flask, los tests). No hay estado global.
#
# CICLO DE VIDA:
#   container = AppContainer(settings)
#   container.bootstrap()   → backup, migraciones, verificación, datos base
#   ...
#   container.close()       → libera la base
# ==============================================================================

import logging
from typing import Optional

from taquilla.config import Settings
from taquilla.database import Database
from taquilla.migrations import MigrationEngine, MigrationReport

from taquilla.repositories import (
    AuditRepository,
    ButtonRepository,
    ClosureRepository,
    DoorRepository,
    RelayRepository,
    SalesRepository,
    TicketTypeRepository,
    UserRepository,
)
from taquilla.services import (
    AuditService,
    BackupService,
    ButtonService,
    ClosureService,
    DoorService,
    RelayService,
    SalesService,
    TicketService,
    TicketTypeService,
    UserService,
)

logger = logging.getLogger(__name__)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Crea cada repositorio y servicio la primera vez que se pide (lazy) y
    reutiliza la misma instancia después.

    Uso:
        container = AppContainer(load_settings())
        container.bootstrap()
        container.sales_service.create_sale(...)
    """

    def __init__(self, settings: Settings):
        """
        Args:
            settings: Configuración resuelta (ver config.load_settings)
        """
        self.settings = settings
        self._database: Optional[Database] = None

        # Repositorios (sin estado, uno por tabla)
        self.user_repo = UserRepository()
        self.door_repo = DoorRepository()
        self.ticket_type_repo = TicketTypeRepository()
        self.sales_repo = SalesRepository()
        self.closure_repo = ClosureRepository()
        self.relay_repo = RelayRepository()
        self.button_repo = ButtonRepository()
        self.audit_repo = AuditRepository()

        # Servicios (lazy loading)
        self._backup_service: Optional[BackupService] = None
        self._audit_service: Optional[AuditService] = None
        self._sales_service: Optional[SalesService] = None
        self._ticket_service: Optional[TicketService] = None
        self._closure_service: Optional[ClosureService] = None
        self._door_service: Optional[DoorService] = None
        self._ticket_type_service: Optional[TicketTypeService] = None
        self._relay_service: Optional[RelayService] = None
        self._button_service: Optional[ButtonService] = None
        self._user_service: Optional[UserService] = None

    # =========================================================================
    # INFRAESTRUCTURA
    # =========================================================================

    @property
    def database(self) -> Database:
        """Base de datos (se abre en el primer uso)."""
        if self._database is None:
            self._database = Database(self.settings.db_path)
        return self._database

    @property
    def backup_service(self) -> BackupService:
        if self._backup_service is None:
            self._backup_service = BackupService(
                self.settings.db_path,
                self.settings.resolved_backup_dir,
                self.settings.max_backups,
            )
        return self._backup_service

    @property
    def migration_engine(self) -> MigrationEngine:
        return MigrationEngine(self.database, self.backup_service)

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        if self._audit_service is None:
            self._audit_service = AuditService(
                self.database, self.audit_repo, self.settings.audit_retention_days,
            )
        return self._audit_service

    @property
    def sales_service(self) -> SalesService:
        if self._sales_service is None:
            self._sales_service = SalesService(
                self.database, self.sales_repo, self.ticket_type_repo, self.user_repo,
            )
        return self._sales_service

    @property
    def ticket_service(self) -> TicketService:
        if self._ticket_service is None:
            self._ticket_service = TicketService(self.database, self.sales_repo)
        return self._ticket_service

    @property
    def closure_service(self) -> ClosureService:
        if self._closure_service is None:
            self._closure_service = ClosureService(
                self.database, self.closure_repo, self.sales_repo, self.user_repo,
            )
        return self._closure_service

    @property
    def door_service(self) -> DoorService:
        if self._door_service is None:
            self._door_service = DoorService(self.database, self.door_repo, self.audit_service)
        return self._door_service

    @property
    def ticket_type_service(self) -> TicketTypeService:
        if self._ticket_type_service is None:
            self._ticket_type_service = TicketTypeService(
                self.database, self.ticket_type_repo, self.door_repo, self.audit_service,
            )
        return self._ticket_type_service

    @property
    def relay_service(self) -> RelayService:
        if self._relay_service is None:
            self._relay_service = RelayService(self.database, self.relay_repo, self.audit_service)
        return self._relay_service

    @property
    def button_service(self) -> ButtonService:
        if self._button_service is None:
            self._button_service = ButtonService(
                self.database, self.button_repo, self.ticket_type_repo, self.audit_service,
            )
        return self._button_service

    @property
    def user_service(self) -> UserService:
        if self._user_service is None:
            self._user_service = UserService(self.database, self.user_repo)
        return self._user_service

    # =========================================================================
    # CICLO DE VIDA
    # =========================================================================

    def bootstrap(self) -> MigrationReport:
        """
        Secuencia de arranque: migra, verifica el esquema, crea los datos
        base, aplica la retención de auditoría y hace el backup del día.

        Returns:
            MigrationReport de la corrida

        Raises:
            SchemaError: si el esquema resultante no es utilizable
        """
        engine = self.migration_engine
        report = engine.run()
        if report.failed:
            logger.error(f"Migraciones fallidas: {report.failed}")
        engine.verify_schema()

        self.user_service.ensure_default_admin(self.settings.admin_password)
        self.relay_service.ensure_default()
        self.audit_service.purge_older_than()
        self.backup_service.run_daily_backup()
        return report

    def close(self) -> None:
        """Cierra la base y descarta los servicios creados."""
        if self._database is not None:
            self._database.close()
        self._database = None
        self._backup_service = None
        self._audit_service = None
        self._sales_service = None
        self._ticket_service = None
        self._closure_service = None
        self._door_service = None
        self._ticket_type_service = None
        self._relay_service = None
        self._button_service = None
        self._user_service = None

    def __enter__(self) -> 'AppContainer':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
