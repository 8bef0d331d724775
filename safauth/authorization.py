"""
Per-request authorization of authenticated sessions.

:meth:`AuthorizationGate.authorize` always returns an
:class:`.AuthorizationResult`. The checks are applied in order, and the first
one that decides the request wins:

- Requests to a bypass path are authorized outright.
- Requests without an authenticated session are refused.
- Requests the caller already trusts are authorized.
- Requests to the restricted agent path are authorized only from loopback.
- When the agent cannot be called, requests are authorized unverified.
- Otherwise the agent is asked whether the user may ``READ`` the profile
  built from the request.
"""

from typing import Iterable, Optional, Tuple
import ipaddress
import logging

from .authenticator import SessionAuthenticator
from .domain import RequestDescriptor, SessionState, AuthorizationResult, \
    AuthorizationOptions, AgentResponse
from .exceptions import BackendDenial, MalformedBackendResponse
from .profiles import build_profile_name
from .services.agent import SecurityAgent, READ

logger = logging.getLogger(__name__)

DEFAULT_BYPASS_PATHS: Tuple[str, ...] = (
    '/login',
    '/logout',
    '/password',
    '/unixfile',
    '/datasetContents',
    '/VSAMdatasetContents',
    '/datasetMetadata',
    '/omvs',
    '/ras',
)
"""Served by the agent, which checks access to them itself."""

DEFAULT_RESTRICTED_PATH = '/saf-auth'
"""The agent's own access-check endpoint; reachable only from this host."""

PROBLEM_CHECKING_ACCESS = 'problem checking access'
PROBLEM_CHECKING_PERMISSIONS = 'problem checking permissions'
LOOPBACK_ONLY = 'only reachable from the local host'


def is_loopback(address: Optional[str]) -> bool:
    """Whether ``address`` is a loopback IP address."""
    if not address:
        return False
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    ipv4 = getattr(ip, 'ipv4_mapped', None)
    return ip.is_loopback or bool(ipv4 and ipv4.is_loopback)


def interpret_access_response(response: AgentResponse) -> str:
    """
    Interpret the agent's answer to an access check.

    Parameters
    ----------
    response : :class:`.AgentResponse`

    Returns
    -------
    str
        The agent's message, if any, when access is granted.

    Raises
    ------
    :class:`.BackendDenial`
        If the agent refused access, or answered with an error status.
    :class:`.MalformedBackendResponse`
        If a successful response did not say whether access is granted.

    """
    if not response.ok:
        raise BackendDenial(response.body)
    try:
        data = response.json()
    except ValueError as e:
        raise MalformedBackendResponse('Response is not JSON') from e
    if not isinstance(data, dict) or \
            not isinstance(data.get('authorized'), bool):
        raise MalformedBackendResponse('Response has no authorized field')
    if data['authorized']:
        return data.get('message') or ''
    raise BackendDenial(data.get('message') or '')


class AuthorizationGate(object):
    """
    Decides whether a session may make a request.

    Parameters
    ----------
    agent : :class:`.SecurityAgent`
    authenticator : :class:`.SessionAuthenticator`
        Used to enforce session expiry. If omitted, the authenticated flag on
        the session is trusted as-is.
    bypass_paths : iterable
        Path prefixes that never need authorization.
    restricted_path : str
        Path prefix that is only reachable from loopback.

    """

    def __init__(self, agent: SecurityAgent,
                 authenticator: Optional[SessionAuthenticator] = None,
                 bypass_paths: Iterable[str] = DEFAULT_BYPASS_PATHS,
                 restricted_path: str = DEFAULT_RESTRICTED_PATH) -> None:
        self.agent = agent
        self.authenticator = authenticator
        self.bypass_paths = tuple(bypass_paths)
        self.restricted_path = restricted_path

    def is_bypassed(self, path: str) -> bool:
        """Whether ``path`` is exempt from authorization."""
        return any(path.startswith(prefix) for prefix in self.bypass_paths)

    def is_restricted(self, path: str) -> bool:
        """Whether ``path`` is the loopback-only agent endpoint."""
        return bool(self.restricted_path) \
            and path.startswith(self.restricted_path)

    def _is_authenticated(self, session: SessionState) -> bool:
        if self.authenticator is not None:
            return self.authenticator.get_status(session).authenticated
        return bool(session.authenticated)

    def authorize(self, descriptor: RequestDescriptor, session: SessionState,
                  options: Optional[AuthorizationOptions] = None) \
            -> AuthorizationResult:
        """
        Authorize a request.

        Parameters
        ----------
        descriptor : :class:`.RequestDescriptor`
        session : :class:`.SessionState`
        options : :class:`.AuthorizationOptions`

        Returns
        -------
        :class:`.AuthorizationResult`

        """
        if options is None:
            options = AuthorizationOptions()
        try:
            return self._authorize(descriptor, session, options)
        except Exception as e:
            logger.error('Problem checking permissions for %s %s: %s',
                         descriptor.method, descriptor.path, e)
            return AuthorizationResult(False, False,
                                       PROBLEM_CHECKING_PERMISSIONS)

    def _authorize(self, descriptor: RequestDescriptor, session: SessionState,
                   options: AuthorizationOptions) -> AuthorizationResult:
        if self.is_bypassed(descriptor.path):
            return AuthorizationResult(bool(session.authenticated), True)

        if not self._is_authenticated(session):
            return AuthorizationResult(False, False)

        if options.bypass_authorization_check:
            return AuthorizationResult(True, True)

        if self.is_restricted(descriptor.path):
            if is_loopback(options.remote_address):
                return AuthorizationResult(True, True)
            logger.warning('Refused request for %s from %s: %s',
                           descriptor.path, options.remote_address,
                           LOOPBACK_ONLY)
            return AuthorizationResult(True, False,
                                       f'{descriptor.path} is {LOOPBACK_ONLY}')

        if options.sync_only:
            logger.info('Authorized %s %s for %s without checking the agent',
                        descriptor.method, descriptor.path, session.username)
            return AuthorizationResult(True, True)

        resource_name = build_profile_name(descriptor)
        response = self.agent.check_access(session.username or '',
                                           resource_name, READ,
                                           session.security_token)
        try:
            message = interpret_access_response(response)
        except BackendDenial as e:
            logger.debug('Access to %s denied for %s', resource_name,
                         session.username)
            return AuthorizationResult(True, False, str(e))
        except MalformedBackendResponse as e:
            logger.warning('Could not read access check for %s: %s',
                           resource_name, e)
            return AuthorizationResult(True, False, PROBLEM_CHECKING_ACCESS)
        logger.debug('Access to %s granted for %s', resource_name,
                     session.username)
        return AuthorizationResult(True, True, message or None)
