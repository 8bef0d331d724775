"""Provides an app factory for the SAF auth service."""

from typing import Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, BadRequest, NotFound, \
    Forbidden, Unauthorized, MethodNotAllowed
from werkzeug.middleware.proxy_fix import ProxyFix

from . import routes
from .app_logging import setup_logger
from .authenticator import SessionAuthenticator
from .authorization import AuthorizationGate, DEFAULT_BYPASS_PATHS
from .exceptions import ConfigurationError
from .services.agent import SecurityAgent, HTTPSecurityAgent


def jsonify_exception(error: HTTPException):
    exc_resp = error.get_response()
    response = jsonify(reason=error.description)
    response.status_code = exc_resp.status_code
    return response


def _int_config(app: Flask, key: str) -> int:
    try:
        return int(app.config[key])
    except KeyError as e:
        raise ConfigurationError(f'Missing config parameter {key}') from e
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f'{key} must be an integer') from e


def _timeout_config(app: Flask) -> Optional[float]:
    timeout = app.config.get('SECURITY_AGENT_TIMEOUT')
    if timeout in (None, ''):
        return None
    try:
        return float(timeout)
    except (TypeError, ValueError) as e:
        raise ConfigurationError('SECURITY_AGENT_TIMEOUT must be a number') \
            from e


def _bypass_paths(app: Flask):
    paths = app.config.get('BYPASS_PATHS')
    if paths is None:
        return DEFAULT_BYPASS_PATHS
    if isinstance(paths, str):
        return tuple(p.strip() for p in paths.split(',') if p.strip())
    return tuple(paths)


def init_app(app: Flask, agent: Optional[SecurityAgent] = None) -> None:
    """
    Attach the authenticator and authorization gate to ``app``.

    Parameters
    ----------
    app : :class:`Flask`
    agent : :class:`.SecurityAgent`
        If not provided, an :class:`.HTTPSecurityAgent` is created from
        ``SECURITY_AGENT_URL``.

    """
    if agent is None:
        url = app.config.get('SECURITY_AGENT_URL')
        if not url:
            raise ConfigurationError('Missing config parameter '
                                     'SECURITY_AGENT_URL')
        agent = HTTPSecurityAgent(url, timeout=_timeout_config(app))
    authenticator = SessionAuthenticator(
        agent,
        session_lifetime_ms=_int_config(app, 'SESSION_LIFETIME_MS'),
        token_cookie_prefix=app.config.get('AGENT_TOKEN_COOKIE_PREFIX',
                                           'jedHTTPSession')
    )
    gate = AuthorizationGate(
        agent,
        authenticator=authenticator,
        bypass_paths=_bypass_paths(app),
        restricted_path=app.config.get('RESTRICTED_PATH', '')
    )
    app.config['safauth.SessionAuthenticator'] = authenticator
    app.config['safauth.AuthorizationGate'] = gate


def create_app(agent: Optional[SecurityAgent] = None) -> Flask:
    """Initialize an instance of the SAF auth service."""
    app = Flask('safauth')
    app.config.from_pyfile('config.py')
    setup_logger(debug=bool(app.config.get('SAFAUTH_DEBUG')))

    init_app(app, agent)

    hops = _int_config(app, 'PROXY_FIX_HOPS')
    app.config['PROXY_FIX_HOPS'] = hops
    if hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops)  # type: ignore

    app.register_blueprint(routes.blueprint)
    app.errorhandler(NotFound)(jsonify_exception)
    app.errorhandler(BadRequest)(jsonify_exception)
    app.errorhandler(Unauthorized)(jsonify_exception)
    app.errorhandler(Forbidden)(jsonify_exception)
    app.errorhandler(MethodNotAllowed)(jsonify_exception)
    return app
