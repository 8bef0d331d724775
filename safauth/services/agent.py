"""
Service integration for the SAF security agent.

The security agent authenticates users against the security manager and
answers access checks for named resources. :class:`SecurityAgent` describes
the four calls that the rest of this package depends on;
:class:`HTTPSecurityAgent` implements them over HTTP.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import requests

import logging

from ..domain import AgentResponse
from ..exceptions import TransportFailure

logger = logging.getLogger(__name__)

READ = 'READ'


class SecurityAgent(ABC):
    """
    Calls made to the security agent.

    Each method performs a single request/response exchange and returns an
    :class:`.AgentResponse`, whatever its status code. Implementations raise
    :class:`.TransportFailure` if the agent could not be reached at all.
    """

    @abstractmethod
    def login(self, body: Optional[Dict[str, Any]] = None,
              token: Optional[str] = None) -> AgentResponse:
        """Log in with credentials in ``body``, or refresh ``token``."""

    @abstractmethod
    def logout(self, token: str) -> AgentResponse:
        """End the agent session identified by ``token``."""

    @abstractmethod
    def reset_password(self, body: Dict[str, Any]) -> AgentResponse:
        """Change a user's password."""

    @abstractmethod
    def check_access(self, username: str, resource_name: str,
                     action: str = READ,
                     token: Optional[str] = None) -> AgentResponse:
        """Ask whether ``username`` may perform ``action`` on a resource."""


class HTTPSecurityAgent(SecurityAgent):
    """Talks to the security agent over HTTP."""

    def __init__(self, base_url: str, timeout: Optional[float] = None) -> None:
        """Create a new HTTP session."""
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = requests.Session()
        logger.debug('New HTTPSecurityAgent at %s', self.base_url)

    def _path(self, *parts: str) -> str:
        return '/'.join([self.base_url, *parts])

    def _request(self, method: str, path: str,
                 token: Optional[str] = None, **kwargs: Any) -> AgentResponse:
        headers = {}
        if token:
            headers['Cookie'] = token
        try:
            response = self._session.request(method, self._path(path),
                                             headers=headers,
                                             timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.debug('Security agent unreachable: %s', e)
            raise TransportFailure(f'Could not reach security agent: {e}') \
                from e
        logger.debug('Security agent responded to %s %s with status %i',
                     method, path, response.status_code)
        return AgentResponse(status_code=response.status_code,
                             body=response.text,
                             cookies=_set_cookies(response))

    def status(self) -> bool:
        """Check the availability of the security agent."""
        try:
            response = self._session.head(self.base_url, timeout=self.timeout)
        except requests.exceptions.RequestException:
            return False
        return response.status_code < 500

    def login(self, body: Optional[Dict[str, Any]] = None,
              token: Optional[str] = None) -> AgentResponse:
        """
        Log in, or refresh an existing agent session.

        Parameters
        ----------
        body : dict
            Credentials for a new login, posted as JSON.
        token : str
            Session cookie from an earlier login. If provided, ``body`` is
            ignored and the session is refreshed with a ``GET``.

        Returns
        -------
        :class:`.AgentResponse`

        Raises
        ------
        :class:`.TransportFailure`

        """
        if token:
            return self._request('GET', 'login', token=token)
        return self._request('POST', 'login', json=body)

    def logout(self, token: str) -> AgentResponse:
        """End the agent session identified by ``token``."""
        return self._request('GET', 'logout', token=token)

    def reset_password(self, body: Dict[str, Any]) -> AgentResponse:
        """Post a password change."""
        return self._request('POST', 'password', json=body)

    def check_access(self, username: str, resource_name: str,
                     action: str = READ,
                     token: Optional[str] = None) -> AgentResponse:
        """
        Check access to a resource.

        The resource name is URL-encoded in full, since profile names may
        contain ``?``, ``&`` and similar characters.
        """
        path = '/'.join(['saf-auth', quote(username, safe=''),
                         quote(resource_name, safe=''), action])
        return self._request('GET', path, token=token)


def _set_cookies(response: requests.Response) -> Tuple[str, ...]:
    """Get each ``Set-Cookie`` header of a response separately."""
    raw_headers = getattr(response.raw, 'headers', None)
    if raw_headers is not None and hasattr(raw_headers, 'getlist'):
        return tuple(raw_headers.getlist('Set-Cookie'))
    header = response.headers.get('Set-Cookie')
    return (header,) if header else ()
