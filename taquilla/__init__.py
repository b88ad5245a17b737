# ==============================================================================
# TAQUILLA - Venta de tickets con control de acceso
# ==============================================================================
# Núcleo transaccional del sistema:
#   - Ventas y tickets (creación atómica, QR único)
#   - Ciclo de vida de tickets (impresión, uso, anulación)
#   - Cierres de caja diarios por vendedor
#   - Migraciones de esquema al arrancar
#   - Auditoría de cambios de configuración
#
# ESTRUCTURA:
# ├── config.py          → Settings desde variables de entorno / .env
# ├── database.py        → Motor SQLite y transacciones con alcance
# ├── errors.py          → Taxonomía de errores del dominio
# ├── migrations.py      → Motor de migraciones versionadas
# ├── models/            → Tablas ORM y entidades del dominio
# ├── repositories/      → Acceso a datos (SQL)
# ├── services/          → Reglas de negocio
# ├── app_container.py   → Contenedor de dependencias
# └── main.py            → API Flask local + secuencia de arranque
# ==============================================================================

__version__ = '1.0.0'
