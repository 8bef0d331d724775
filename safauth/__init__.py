"""
Session authentication and resource authorization against a SAF agent.

Users log in with credentials that are checked by the security agent, which
issues a session cookie. The session state (see :class:`.SessionState`) is
kept by the host application, and used to authorize each later request: the
request URL and method are mapped to a SAF profile name (see
:mod:`safauth.profiles`), and the agent is asked whether the user may ``READ``
that profile.

The service in :mod:`safauth.factory` exposes this over HTTP, including an
endpoint for NGINX ``auth_request`` subrequests.
"""
