"""Web Server Gateway Interface entry-point."""

from safauth.factory import create_app
import os

__flask_app__ = None


def application(environ, start_response):    # type: ignore
    """WSGI application."""
    global __flask_app__
    if __flask_app__ is None:
        # Settings passed by the server (e.g. uWSGI ``env``) must be visible
        # to safauth.config before the app is built.
        for key, value in environ.items():
            if isinstance(value, str) and key.isupper() \
                    and not key.startswith(('HTTP_', 'wsgi.')):
                os.environ.setdefault(key, value)
        __flask_app__ = create_app()
    return __flask_app__(environ, start_response)
