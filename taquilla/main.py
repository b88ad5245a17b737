# ==============================================================================
# API LOCAL (Flask) + SECUENCIA DE ARRANQUE
# ==============================================================================
# Una ruta JSON por operación del núcleo. Las rutas solo orquestan:
# request → servicio → respuesta.
#
# ERRORES → HTTP:
#   ValidationError        400
#   NotFoundError          404
#   UniquenessError        409
#   BusinessRuleViolation  422
#
# Respuestas: {'ok': True, ...} o {'ok': False, 'error': '...'}
# ==============================================================================

import logging
import sys
from functools import wraps

from flask import Blueprint, Flask, current_app, request, session

from taquilla.app_container import AppContainer
from taquilla.config import configure_logging, load_settings
from taquilla.errors import (
    BusinessRuleViolation, NotFoundError, SchemaError, TaquillaError,
    UniquenessError, ValidationError,
)
from taquilla.services.validators import require_int

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (UniquenessError, 409),
    (BusinessRuleViolation, 422),
)


def container() -> AppContainer:
    return current_app.extensions['taquilla']


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _origin() -> dict:
    """IP y usuario de la sesión, para la auditoría de configuración."""
    return {
        'ip_address': request.remote_addr,
        'usuario': {'id': session.get('user_id'), 'nombre': session.get('nombre')},
    }


# ==============================================================================
# DECORADORES DE SESIÓN
# ==============================================================================

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user_id' not in session:
            return {'ok': False, 'error': 'Debes iniciar sesión.'}, 401
        return f(*args, **kwargs)
    return wrapper


def role_required(role_name):
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if 'user_id' not in session:
                return {'ok': False, 'error': 'Debes iniciar sesión.'}, 401
            if session.get('rol') != role_name:
                return {'ok': False, 'error': 'Permiso denegado.'}, 403
            return f(*args, **kwargs)
        return wrapper
    return deco


# ==============================================================================
# SESIÓN
# ==============================================================================

@api.route('/login', methods=['POST'])
def api_login():
    data = _payload()
    user = container().user_service.authenticate(data.get('usuario'), data.get('password'))
    if user is None:
        logger.warning(f"Login fallido para {data.get('usuario')!r} desde {request.remote_addr}")
        return {'ok': False, 'error': 'Usuario o contraseña incorrectos'}, 401
    session.clear()
    session['user_id'] = user['id']
    session['rol'] = user['rol']
    session['nombre'] = user['nombre']
    return {'ok': True, 'usuario': user}


@api.route('/logout', methods=['POST'])
def api_logout():
    session.clear()
    return {'ok': True}


# ==============================================================================
# VENTAS Y TICKETS
# ==============================================================================

@api.route('/ventas', methods=['POST'])
@login_required
def api_create_sale():
    data = _payload()
    receipt = container().sales_service.create_sale(
        session['user_id'],
        data.get('tipo_ticket_id'),
        data.get('total'),
        data.get('codigo_qr'),
        data.get('puerta_codigo'),
    )
    return {'ok': True, 'venta': receipt.to_dict()}, 201


@api.route('/ventas/hoy', methods=['GET'])
@login_required
def api_daily_sales():
    ventas = container().sales_service.list_daily_sales(session['user_id'], request.args.get('fecha'))
    return {'ok': True, 'ventas': ventas}


@api.route('/ventas', methods=['GET'])
@role_required('admin')
def api_all_sales():
    return {'ok': True, 'ventas': container().sales_service.list_all_sales()}


@api.route('/ventas/<int:sale_id>', methods=['GET'])
@login_required
def api_get_sale(sale_id):
    return {'ok': True, 'venta': container().sales_service.get_sale(sale_id)}


@api.route('/ventas/<int:sale_id>/impreso', methods=['POST'])
@login_required
def api_mark_printed(sale_id):
    return {'ok': True, 'actualizados': container().ticket_service.mark_printed(sale_id)}


@api.route('/ventas/<int:sale_id>/anular', methods=['POST'])
@role_required('admin')
def api_annul_sale(sale_id):
    return {'ok': True, 'tickets_anulados': container().ticket_service.annul_sale(sale_id)}


@api.route('/tickets/qr/<path:qr_code>', methods=['GET'])
@login_required
def api_ticket_by_qr(qr_code):
    ticket = container().sales_service.get_ticket_by_qr(qr_code)
    if ticket is None:
        return {'ok': False, 'error': 'Ticket no encontrado'}, 404
    return {'ok': True, 'ticket': ticket}


@api.route('/tickets/<int:ticket_id>/usar', methods=['POST'])
@login_required
def api_mark_used(ticket_id):
    return {'ok': True, 'ticket': container().ticket_service.mark_used(ticket_id)}


@api.route('/tickets/<int:ticket_id>/anular', methods=['POST'])
@role_required('admin')
def api_annul_ticket(ticket_id):
    return {'ok': True, 'ticket': container().ticket_service.annul_ticket(ticket_id)}


# ==============================================================================
# CIERRES DE CAJA
# ==============================================================================

@api.route('/cierres/resumen', methods=['GET'])
@login_required
def api_closure_summary():
    totals = container().closure_service.compute_daily_summary(session['user_id'], request.args.get('fecha'))
    return {'ok': True, 'resumen': totals.to_dict()}


@api.route('/cierres', methods=['POST'])
@login_required
def api_close_day():
    cierre = container().closure_service.close_day(session['user_id'], _payload().get('fecha'))
    return {'ok': True, 'cierre': cierre}


@api.route('/cierres', methods=['GET'])
@role_required('admin')
def api_list_closures():
    return {'ok': True, 'cierres': container().closure_service.list_closures()}


@api.route('/cierres/fecha/<fecha>', methods=['GET'])
@role_required('admin')
def api_closures_by_date(fecha):
    return {'ok': True, **container().closure_service.get_all_by_date(fecha)}


# ==============================================================================
# CONFIGURACIÓN (solo admin)
# ==============================================================================

@api.route('/puertas', methods=['GET'])
@login_required
def api_list_doors():
    service = container().door_service
    doors = service.list_active() if request.args.get('activas') == '1' else service.list()
    return {'ok': True, 'puertas': doors}


@api.route('/puertas', methods=['POST'])
@role_required('admin')
def api_create_door():
    return {'ok': True, 'puerta': container().door_service.create(_payload(), **_origin())}, 201


@api.route('/puertas/<int:door_id>', methods=['PUT'])
@role_required('admin')
def api_update_door(door_id):
    return {'ok': True, 'puerta': container().door_service.update(door_id, _payload(), **_origin())}


@api.route('/puertas/<int:door_id>/activo', methods=['POST'])
@role_required('admin')
def api_toggle_door(door_id):
    activo = bool(_payload().get('activo', True))
    return {'ok': True, 'puerta': container().door_service.set_active(door_id, activo, **_origin())}


@api.route('/puertas/<int:door_id>', methods=['DELETE'])
@role_required('admin')
def api_delete_door(door_id):
    return {'ok': True, **container().door_service.delete(door_id, **_origin()).to_dict()}


@api.route('/tipos-ticket', methods=['GET'])
@login_required
def api_list_ticket_types():
    service = container().ticket_type_service
    types = service.list_active() if request.args.get('activos') == '1' else service.list()
    return {'ok': True, 'tipos': types}


@api.route('/tipos-ticket', methods=['POST'])
@role_required('admin')
def api_create_ticket_type():
    return {'ok': True, 'tipo': container().ticket_type_service.create(_payload(), **_origin())}, 201


@api.route('/tipos-ticket/<int:type_id>', methods=['PUT'])
@role_required('admin')
def api_update_ticket_type(type_id):
    tipo = container().ticket_type_service.update(type_id, _payload(), **_origin())
    return {'ok': True, 'tipo': tipo}


@api.route('/tipos-ticket/<int:type_id>', methods=['DELETE'])
@role_required('admin')
def api_delete_ticket_type(type_id):
    return {'ok': True, **container().ticket_type_service.delete(type_id, **_origin()).to_dict()}


@api.route('/relay', methods=['GET'])
@role_required('admin')
def api_get_relay():
    return {'ok': True, 'relay': container().relay_service.get()}


@api.route('/relay', methods=['PUT'])
@role_required('admin')
def api_update_relay():
    return {'ok': True, 'relay': container().relay_service.update(_payload(), **_origin())}


@api.route('/botones', methods=['GET'])
@login_required
def api_list_buttons():
    return {'ok': True, 'botones': container().button_service.list()}


@api.route('/botones/<int:input_numero>', methods=['PUT'])
@role_required('admin')
def api_configure_button(input_numero):
    data = _payload()
    boton = container().button_service.configure(
        input_numero,
        data.get('tipo_ticket_id'),
        data.get('cantidad', 1),
        data.get('descripcion'),
        data.get('activo', True),
        **_origin(),
    )
    return {'ok': True, 'boton': boton}


@api.route('/botones/<int:input_numero>/desactivar', methods=['POST'])
@role_required('admin')
def api_deactivate_button(input_numero):
    return {'ok': True, 'boton': container().button_service.deactivate(input_numero, **_origin())}


@api.route('/botones/<int:input_numero>', methods=['DELETE'])
@role_required('admin')
def api_delete_button(input_numero):
    container().button_service.delete(input_numero, **_origin())
    return {'ok': True}


# ==============================================================================
# USUARIOS (solo admin)
# ==============================================================================

@api.route('/usuarios', methods=['GET'])
@role_required('admin')
def api_list_users():
    return {'ok': True, 'usuarios': container().user_service.list()}


@api.route('/usuarios', methods=['POST'])
@role_required('admin')
def api_create_user():
    data = _payload()
    user = container().user_service.create(
        data.get('nombre'), data.get('usuario'), data.get('password'), data.get('rol', 'vendedor'),
    )
    return {'ok': True, 'usuario': user}, 201


@api.route('/usuarios/<int:user_id>', methods=['PUT'])
@role_required('admin')
def api_update_user(user_id):
    data = _payload()
    service = container().user_service
    if data.get('password'):
        service.change_password(user_id, data['password'])
    fields = {k: data[k] for k in ('nombre', 'usuario', 'rol') if k in data}
    return {'ok': True, 'usuario': service.update(user_id, fields)}


@api.route('/usuarios/<int:user_id>', methods=['DELETE'])
@role_required('admin')
def api_delete_user(user_id):
    if user_id == session.get('user_id'):
        return {'ok': False, 'error': 'No puedes eliminar tu propio usuario'}, 400
    return {'ok': True, **container().user_service.delete(user_id).to_dict()}


# ==============================================================================
# AUDITORÍA (solo admin)
# ==============================================================================

def _log_filters() -> dict:
    return {
        'tabla': request.args.get('tabla') or None,
        'accion': request.args.get('accion') or None,
        'fecha_desde': request.args.get('desde') or None,
        'fecha_hasta': request.args.get('hasta') or None,
    }


@api.route('/config-logs', methods=['GET'])
@role_required('admin')
def api_list_logs():
    audit = container().audit_service
    filters = _log_filters()
    try:
        limit = int(request.args.get('limit', audit.DEFAULT_LIMIT))
        offset = int(request.args.get('offset', 0))
    except ValueError:
        return {'ok': False, 'error': 'limit y offset deben ser enteros'}, 400
    logs = audit.list_logs(limit=limit, offset=offset, **filters)
    return {
        'ok': True,
        'logs': [entry.to_dict() for entry in logs],
        'total': audit.count_logs(**filters),
    }


@api.route('/config-logs/stats', methods=['GET'])
@role_required('admin')
def api_log_stats():
    stats = container().audit_service.stats_by_table_and_action()
    for row in stats:
        if row['ultima_modificacion'] is not None:
            row['ultima_modificacion'] = row['ultima_modificacion'].strftime('%Y-%m-%d %H:%M:%S')
    return {'ok': True, 'stats': stats}


@api.route('/config-logs/historial/<tabla>/<int:registro_id>', methods=['GET'])
@role_required('admin')
def api_log_history(tabla, registro_id):
    entries = container().audit_service.history_of(tabla, registro_id)
    return {'ok': True, 'historial': [dict(e.to_dict(), cambios=e.changes()) for e in entries]}


@api.route('/config-logs/purgar', methods=['POST'])
@role_required('admin')
def api_purge_logs():
    dias = _payload().get('dias')
    if dias is not None:
        dias = require_int(dias, 'Los días', minimum=0)
    removed = container().audit_service.purge_older_than(dias)
    return {'ok': True, 'eliminados': removed}


# ==============================================================================
# MANEJO DE ERRORES
# ==============================================================================

@api.errorhandler(TaquillaError)
def handle_domain_error(error):
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            body = {'ok': False, 'error': str(error)}
            if isinstance(error, UniquenessError) and error.field:
                body['campo'] = error.field
            return body, status
    logger.exception("Error no clasificado del dominio")
    return {'ok': False, 'error': str(error)}, 500


# ==============================================================================
# FÁBRICA Y ARRANQUE
# ==============================================================================

def create_app(app_container: AppContainer) -> Flask:
    """
    Crea la app Flask sobre un contenedor ya inicializado.

    Args:
        app_container: Contenedor con bootstrap() ejecutado
    """
    app = Flask(__name__)
    app.secret_key = app_container.settings.secret_key
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SECURE=False,       # HTTP local
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=86400,  # 24 horas
        JSON_AS_ASCII=False,
    )
    app.extensions['taquilla'] = app_container
    app.register_blueprint(api)
    return app


def build_container() -> AppContainer:
    """
    Configuración + logging + arranque del contenedor.

    Un esquema inutilizable termina el proceso con un error visible.
    """
    settings = load_settings()
    configure_logging(settings.log_level)
    app_container = AppContainer(settings)
    try:
        app_container.bootstrap()
    except SchemaError as e:
        logger.critical(f"La base de datos no es utilizable: {e}")
        app_container.close()
        sys.exit(1)
    return app_container


def main() -> None:
    app_container = build_container()
    app = create_app(app_container)
    settings = app_container.settings
    logger.info(f"Servidor en http://{settings.host}:{settings.port}")
    try:
        app.run(host=settings.host, port=settings.port, debug=settings.debug, use_reloader=False)
    finally:
        app_container.close()


if __name__ == '__main__':
    main()
