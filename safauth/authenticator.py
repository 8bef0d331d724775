"""
Session authentication against the SAF security agent.

A session moves between two states. Logging in (or refreshing) successfully
makes it authenticated; logging out, a failed login/refresh reported by the
agent, or expiry of the session lifetime makes it unauthenticated again.

Expiry is enforced lazily, when the session is next read via
:meth:`SessionAuthenticator.get_status` or checked by the authorization gate.

None of the public methods raise. Failures to reach the agent are reported in
the returned result, and never invalidate a session that was valid before
the call.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import logging

from pytz import UTC

from .domain import SessionState, AuthenticationResult, LogoutResult, \
    PasswordResult, SessionStatus, AgentResponse
from .exceptions import TransportFailure
from .services.agent import SecurityAgent

logger = logging.getLogger(__name__)

DEFAULT_SESSION_LIFETIME_MS = 3600000
"""The agent's session length is not configurable, so assume one hour."""

DEFAULT_TOKEN_COOKIE_PREFIX = 'jedHTTPSession'

HTTP_STATUS_PRECONDITION_REQUIRED = 428
"""Returned by the agent on login when the password has expired."""

LOGGED_OUT_STATUSES = (200, 401)

CONNECTION_ERROR = 'ConnectionError'
EXPIRED_PASSWORD = 'Expired Password'
NO_SESSION_TOKEN = 'NoSessionToken'
UNKNOWN = 'Unknown'


class SessionAuthenticator(object):
    """
    Logs users in and out of the security agent.

    Parameters
    ----------
    agent : :class:`.SecurityAgent`
    session_lifetime_ms : int
        How long a login or refresh keeps the session alive.
    token_cookie_prefix : str
        Name prefix of the agent cookie that carries the session token.

    """

    def __init__(self, agent: SecurityAgent,
                 session_lifetime_ms: int = DEFAULT_SESSION_LIFETIME_MS,
                 token_cookie_prefix: str = DEFAULT_TOKEN_COOKIE_PREFIX) \
            -> None:
        self.agent = agent
        self.session_lifetime_ms = session_lifetime_ms
        self.token_cookie_prefix = token_cookie_prefix

    def _extract_token(self, response: AgentResponse) -> Optional[str]:
        for cookie in response.cookies:
            content = cookie.split(';')[0].strip()
            if content.startswith(self.token_cookie_prefix):
                return content
        return None

    def _handle_login_response(self, response: AgentResponse,
                               session: SessionState,
                               username: Optional[str] = None) \
            -> AuthenticationResult:
        token = self._extract_token(response)
        if token is None:
            session.clear()
            if response.status_code == 500:
                return AuthenticationResult(False, reason=CONNECTION_ERROR)
            if response.status_code == HTTP_STATUS_PRECONDITION_REQUIRED:
                return AuthenticationResult(False, reason=EXPIRED_PASSWORD,
                                            can_change_password=True)
            return AuthenticationResult(False, reason=UNKNOWN)

        if username is not None:
            session.username = str(username).upper()
        session.authenticated = True
        session.security_token = token
        session.expires_at = datetime.now(tz=UTC) \
            + timedelta(milliseconds=self.session_lifetime_ms)
        return AuthenticationResult(True, username=session.username,
                                    expires_in_ms=self.session_lifetime_ms)

    def authenticate(self, credentials: Dict[str, Any],
                     session: SessionState) -> AuthenticationResult:
        """
        Log in with the credentials a user entered.

        Parameters
        ----------
        credentials : dict
            Should include ``username`` and ``password``. Passed to the agent
            as-is.
        session : :class:`.SessionState`
            Updated in place.

        Returns
        -------
        :class:`.AuthenticationResult`

        """
        username = credentials.get('username') or ''
        try:
            response = self.agent.login(body=credentials)
            result = self._handle_login_response(response, session, username)
        except TransportFailure as e:
            logger.info('Login for %s failed: %s', username, e)
            session.clear()
            return AuthenticationResult(False, reason=CONNECTION_ERROR)
        except Exception:
            logger.exception('Unexpected error during login for %s', username)
            session.clear()
            return AuthenticationResult(False, reason=UNKNOWN)
        logger.debug('Login for %s: %s', username, result)
        return result

    def refresh(self, session: SessionState) -> AuthenticationResult:
        """
        Extend the session using the token from an earlier login.

        If the agent cannot be reached the session is left as it was; it will
        expire naturally if later refreshes do not succeed either.
        """
        if not session.security_token:
            logger.debug('No session token, skipping refresh')
            return AuthenticationResult(False, reason=NO_SESSION_TOKEN)
        try:
            response = self.agent.login(token=session.security_token)
            return self._handle_login_response(response, session)
        except TransportFailure as e:
            logger.info('Refresh for %s failed: %s', session.username, e)
            return AuthenticationResult(False, reason=CONNECTION_ERROR)
        except Exception:
            logger.exception('Unexpected error during refresh')
            return AuthenticationResult(False, reason=UNKNOWN)

    def logout(self, session: SessionState) -> LogoutResult:
        """
        Log out, locally first and then with the agent.

        The local session is cleared whatever the agent says.
        """
        token = session.security_token
        username = session.username
        session.clear()
        if not token:
            return LogoutResult(True)
        try:
            response = self.agent.logout(token)
        except TransportFailure as e:
            logger.info('Agent logout for %s failed: %s', username, e)
            return LogoutResult(False, reason=CONNECTION_ERROR)
        except Exception:
            logger.exception('Unexpected error during agent logout')
            return LogoutResult(False, reason=UNKNOWN)
        if response.status_code in LOGGED_OUT_STATUSES:
            return LogoutResult(True)
        logger.debug('Agent logout returned status %i', response.status_code)
        return LogoutResult(False, reason=UNKNOWN)

    def reset_password(self, body: Dict[str, Any],
                       session: SessionState) -> PasswordResult:
        """
        Change a user's password.

        Parameters
        ----------
        body : dict
            Passed to the agent as-is; usually ``username``, ``password`` and
            ``newPassword``.
        session : :class:`.SessionState`
            Not used; password changes do not depend on being logged in.

        Returns
        -------
        :class:`.PasswordResult`

        """
        try:
            response = self.agent.reset_password(body)
        except TransportFailure as e:
            logger.info('Password change failed: %s', e)
            return PasswordResult(False, detail=CONNECTION_ERROR)
        except Exception:
            logger.exception('Unexpected error during password change')
            return PasswordResult(False, detail=UNKNOWN)
        if response.status_code == 200:
            return PasswordResult(True, detail=_status_detail(response))
        return PasswordResult(False, detail=_status_detail(response))

    def get_status(self, session: SessionState) -> SessionStatus:
        """Report on the session, clearing it if it has expired."""
        if session.is_expired():
            logger.debug('Session for %s has expired', session.username)
            session.clear()
        if not session.authenticated:
            return SessionStatus(False)
        remaining = session.remaining()
        remaining_ms = None
        if remaining is not None:
            remaining_ms = int(remaining.total_seconds() * 1000)
        return SessionStatus(True, username=session.username,
                             remaining_ms=remaining_ms)

    def add_proxy_authorizations(self, headers: Dict[str, str],
                                 session: SessionState) -> None:
        """Attach the session token to a request proxied to the agent."""
        if not session.security_token:
            return
        headers['Cookie'] = session.security_token


def _status_detail(response: AgentResponse) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.body
    if isinstance(data, dict) and data.get('status') is not None:
        return str(data['status'])
    return response.body
