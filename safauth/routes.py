"""
HTTP routes for the SAF auth service.

Session state is kept in the signed Flask session cookie. Each request loads
it into a :class:`.SessionState`, hands it to the authenticator or the
authorization gate, and stores whatever they left in it.
"""

from http import HTTPStatus
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, current_app, jsonify, request, session
from werkzeug.exceptions import BadRequest

import logging

from .authenticator import SessionAuthenticator
from .authorization import AuthorizationGate
from .domain import SessionState, RequestDescriptor, AuthorizationOptions, \
    to_dict

logger = logging.getLogger(__name__)

blueprint = Blueprint('safauth', __name__, url_prefix='')

SESSION_KEY = 'saf'


def _authenticator() -> SessionAuthenticator:
    return current_app.config['safauth.SessionAuthenticator']


def _gate() -> AuthorizationGate:
    return current_app.config['safauth.AuthorizationGate']


def _load_session() -> SessionState:
    return SessionState.from_dict(session.get(SESSION_KEY))


def _save_session(state: SessionState) -> None:
    session[SESSION_KEY] = state.to_dict()


def _client_address() -> Optional[str]:
    """
    Address of the client that made the original request.

    Behind a proxy, the address comes from ``X-Forwarded-For`` (applied by
    :class:`werkzeug.middleware.proxy_fix.ProxyFix`). A proxied request without
    that header has no known client address, since the direct peer is the
    proxy itself.
    """
    if current_app.config.get('PROXY_FIX_HOPS') \
            and not request.headers.get('X-Forwarded-For'):
        return None
    return request.remote_addr


def _json_body(*required: str) -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    missing = [field for field in required if not data.get(field)]
    if missing:
        raise BadRequest(f'Missing {", ".join(missing)}')
    invalid = [field for field in required
               if not isinstance(data[field], str)]
    if invalid:
        raise BadRequest(f'Must be strings: {", ".join(invalid)}')
    return data


@blueprint.route('/auth', methods=['POST'])
def login() -> Tuple[Any, int]:
    """Log in with a username and password."""
    credentials = _json_body('username', 'password')
    state = _load_session()
    result = _authenticator().authenticate(credentials, state)
    _save_session(state)
    code = HTTPStatus.OK if result.success else HTTPStatus.UNAUTHORIZED
    return jsonify(to_dict(result)), code


@blueprint.route('/auth', methods=['GET'])
def status() -> Tuple[Any, int]:
    """Report whether the session is logged in."""
    state = _load_session()
    result = _authenticator().get_status(state)
    _save_session(state)
    return jsonify(to_dict(result)), HTTPStatus.OK


@blueprint.route('/auth/refresh', methods=['POST'])
def refresh() -> Tuple[Any, int]:
    """Extend the session with the security agent."""
    state = _load_session()
    result = _authenticator().refresh(state)
    _save_session(state)
    code = HTTPStatus.OK if result.success else HTTPStatus.UNAUTHORIZED
    return jsonify(to_dict(result)), code


@blueprint.route('/auth/logout', methods=['POST'])
def logout() -> Tuple[Any, int]:
    """Log out. The local session ends even if the agent is unreachable."""
    state = _load_session()
    result = _authenticator().logout(state)
    _save_session(state)
    return jsonify(to_dict(result)), HTTPStatus.OK


@blueprint.route('/auth/password', methods=['POST'])
def password() -> Tuple[Any, int]:
    """Change a password."""
    body = _json_body('username', 'password', 'newPassword')
    result = _authenticator().reset_password(body, _load_session())
    code = HTTPStatus.OK if result.success else HTTPStatus.BAD_REQUEST
    return jsonify(to_dict(result)), code


@blueprint.route('/authorize', methods=['GET'])
def authorize() -> Tuple[Any, int, Dict[str, str]]:
    """
    Authorize the original request described by NGINX.

    Expects the ``X-Original-URI`` and ``X-Original-Method`` headers set by
    ``ngx_http_auth_request_module``. Responds 200 if the request is
    authorized, 401 if there is no valid session, and 403 otherwise.
    """
    path = request.headers.get('X-Original-URI')
    if not path:
        raise BadRequest('Missing X-Original-URI header')
    method = request.headers.get('X-Original-Method', 'GET')
    descriptor = RequestDescriptor(path, method,
                                   current_app.config.get('INSTANCE_ID'))
    options = AuthorizationOptions(remote_address=_client_address())

    state = _load_session()
    result = _gate().authorize(descriptor, state, options)
    _save_session(state)

    headers = {}
    if result.authorized and state.username:
        headers['X-Auth-Username'] = state.username
    if result.authorized:
        code = HTTPStatus.OK
    elif not result.authenticated:
        code = HTTPStatus.UNAUTHORIZED
    else:
        code = HTTPStatus.FORBIDDEN
    logger.debug('Authorization for %s %s: %s', method, path, result)
    return jsonify(to_dict(result)), code, headers
