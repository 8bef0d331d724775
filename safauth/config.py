"""Flask configuration for the SAF auth service."""

import os
import secrets

SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Signs the session cookie that holds :class:`.SessionState`."""

SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME',
                                     'SAFAUTH_SESSION_ID')

SECURITY_AGENT_URL = os.environ.get('SECURITY_AGENT_URL',
                                    'http://localhost:8542')
"""Base URL of the security agent."""

SECURITY_AGENT_TIMEOUT = os.environ.get('SECURITY_AGENT_TIMEOUT')
"""Seconds to wait for the agent. Unset means wait indefinitely."""

SESSION_LIFETIME_MS = os.environ.get('SESSION_LIFETIME_MS', '3600000')

INSTANCE_ID = os.environ.get('INSTANCE_ID', 'DEFAULT')
"""Deployment instance used in profile names."""

AGENT_TOKEN_COOKIE_PREFIX = os.environ.get('AGENT_TOKEN_COOKIE_PREFIX',
                                           'jedHTTPSession')

BYPASS_PATHS = os.environ.get('BYPASS_PATHS')
"""Comma-separated path prefixes exempt from authorization.

If unset, :data:`safauth.authorization.DEFAULT_BYPASS_PATHS` is used.
"""

RESTRICTED_PATH = os.environ.get('RESTRICTED_PATH', '/saf-auth')

SAFAUTH_DEBUG = os.environ.get('SAFAUTH_DEBUG')

PROXY_FIX_HOPS = os.environ.get('PROXY_FIX_HOPS', '1')
"""Number of trusted proxies that append to ``X-Forwarded-For``.

The service normally sits behind NGINX, which must pass the client address
with ``proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for``. Set to
``0`` when clients connect directly.
"""
