"""Defines session and authorization concepts for the SAF auth service."""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, NamedTuple, Optional, Tuple

import dateutil.parser
from pytz import UTC

DEFAULT_INSTANCE_ID = 'DEFAULT'


class RequestDescriptor(NamedTuple):
    """The parts of an inbound request that determine its profile name."""

    path: str
    """URL path of the request, optionally including the query string."""

    method: str
    """HTTP method, e.g. ``GET``."""

    instance_id: str = DEFAULT_INSTANCE_ID
    """Identifier of the deployment instance serving the request."""


class ResourceNameParts(NamedTuple):
    """Classification of a request, prior to assembling a profile name."""

    SERVICE = 'service'  # type: ignore
    CONFIG = 'config'  # type: ignore

    kind: str
    """Either :attr:`SERVICE` or :attr:`CONFIG`."""

    product_code: Optional[str]
    instance_id: Optional[str]
    plugin_id: Optional[str]
    method: Optional[str]

    service_name: Optional[str] = None
    """Only used by service profiles."""

    scope: Optional[str] = None
    """Only used by config profiles."""

    sub_path: Tuple[str, ...] = ()
    """Remaining non-empty path segments, in request order."""


class SessionState(object):
    """
    Per-session authentication state.

    Instances are owned by a session store and mutated in place by
    :class:`.SessionAuthenticator`. The only fields ever written are
    :attr:`authenticated`, :attr:`username`, :attr:`security_token` and
    :attr:`expires_at`.
    """

    def __init__(self, authenticated: bool = False,
                 username: Optional[str] = None,
                 security_token: Optional[str] = None,
                 expires_at: Optional[datetime] = None) -> None:
        self.authenticated = authenticated
        self.username = username
        self.security_token = security_token
        self.expires_at = expires_at

    def __repr__(self) -> str:
        return (f'SessionState(authenticated={self.authenticated!r}, '
                f'username={self.username!r}, '
                f'expires_at={self.expires_at!r})')

    def clear(self) -> None:
        """Drop all credentials held by the session."""
        self.authenticated = False
        self.username = None
        self.security_token = None
        self.expires_at = None

    def remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Time left before the session expires, or ``None`` if unknown."""
        if self.expires_at is None:
            return None
        if now is None:
            now = datetime.now(tz=UTC)
        return self.expires_at - now

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the stored expiry has passed."""
        remaining = self.remaining(now)
        return remaining is not None and remaining <= timedelta(0)

    def to_dict(self) -> Dict[str, Any]:
        """Generate a JSON-friendly dict, e.g. for a cookie session."""
        return {
            'authenticated': self.authenticated,
            'username': self.username,
            'security_token': self.security_token,
            'expires_at': (self.expires_at.isoformat()
                           if self.expires_at else None)
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SessionState':
        """Rebuild a :class:`.SessionState` from :meth:`to_dict` output."""
        if not data:
            return cls()
        expires_at = data.get('expires_at')
        if isinstance(expires_at, str):
            expires_at = dateutil.parser.parse(expires_at)
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = UTC.localize(expires_at)
        return cls(authenticated=bool(data.get('authenticated')),
                   username=data.get('username'),
                   security_token=data.get('security_token'),
                   expires_at=expires_at)


class AuthenticationResult(NamedTuple):
    """Outcome of a login or refresh."""

    success: bool
    username: Optional[str] = None
    expires_in_ms: Optional[int] = None

    reason: Optional[str] = None
    """Why the attempt failed, e.g. ``ConnectionError``."""

    can_change_password: bool = False
    """Set when the password has expired and may be reset."""


class LogoutResult(NamedTuple):
    """Outcome of a logout."""

    success: bool
    reason: Optional[str] = None


class PasswordResult(NamedTuple):
    """Outcome of a password change."""

    success: bool
    detail: Optional[str] = None


class SessionStatus(NamedTuple):
    """Read-only view of a session."""

    authenticated: bool
    username: Optional[str] = None
    remaining_ms: Optional[int] = None


class AuthorizationOptions(NamedTuple):
    """Caller-supplied knobs for :meth:`.AuthorizationGate.authorize`."""

    bypass_authorization_check: bool = False
    """The caller already trusts the request."""

    sync_only: bool = False
    """No call to the security agent can be made in this context."""

    remote_address: Optional[str] = None
    """Network address of the client."""


class AuthorizationResult(NamedTuple):
    """Outcome of an authorization check."""

    authenticated: bool
    authorized: bool
    message: Optional[str] = None


class AgentResponse(NamedTuple):
    """A single response from the security agent."""

    status_code: int
    body: str = ''
    cookies: Tuple[str, ...] = ()
    """Raw ``Set-Cookie`` header values, one per cookie."""

    @property
    def ok(self) -> bool:
        """Whether the status code is 2xx."""
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.body)


def to_dict(obj: Any) -> Dict[str, Any]:
    """Generate a dict representation of a result object."""
    if isinstance(obj, SessionState):
        return obj.to_dict()
    return dict(obj._asdict())
