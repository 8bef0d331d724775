"""JSON logging for the SAF auth service."""

import logging
from pythonjsonlogger import jsonlogger

_HANDLER_NAME = 'safauth-json'


def setup_logger(debug: bool = False) -> None:
    """Send log records from all loggers to stderr as JSON."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    ))
    root.addHandler(handler)
