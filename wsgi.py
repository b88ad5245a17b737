# ==============================================================================
# WSGI Entry Point
# ==============================================================================
# Punto de entrada para servidores WSGI:
#   gunicorn wsgi:app --bind 127.0.0.1:5000
#
# Al importar se ejecuta la secuencia de arranque completa (configuración,
# migraciones, verificación del esquema y datos base).
# ==============================================================================

from taquilla.main import build_container, create_app

container = build_container()
app = create_app(container)

if __name__ == '__main__':
    settings = container.settings
    app.run(debug=settings.debug, host=settings.host, port=settings.port)
