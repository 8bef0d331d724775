"""
Builds SAF profile names for inbound requests.

The security agent authorizes access to named resources in a SAF class. Each
request is mapped to a resource ("profile") name derived from its URL and
method, for example::

    GET /ZLUX/plugins/org.zowe.foo/services/data/_current/a/b
    -> ZLUX.DEFAULT.SVC.ORG_ZOWE_FOO.DATA.GET.A.B

Requests for the configuration-data service are treated specially: the
plugin and scope whose configuration is being accessed are taken from the
sub-path, and a ``CFG`` profile is produced instead::

    GET /ZLUX/plugins/org.zowe.configjs/services/data/_current/org.zowe.foo/user/x
    -> ZLUX.DEFAULT.CFG.ORG_ZOWE_FOO.GET.USER.X

The backend limits resource names to :data:`MAX_PROFILE_NAME_LENGTH`
characters. Names that would be longer are rebuilt with the ``SVC2``/``CFG2``
literal and as many leading sub-path segments as fit.
"""

import logging
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote

from .domain import DEFAULT_INSTANCE_ID, RequestDescriptor, \
    ResourceNameParts
from .exceptions import MalformedPathError, NameTooLongError, \
    ValidationError

logger = logging.getLogger(__name__)

MAX_PROFILE_NAME_LENGTH = 246
"""Fixed length of the resource name field in the security manager."""

CONFIG_PLUGIN_ID = 'ORG.ZOWE.CONFIGJS'
"""Plugin that serves configuration data for other plugins."""

CONFIG_SERVICE_NAME = 'DATA'
"""Service of :data:`CONFIG_PLUGIN_ID` that serves configuration data."""

SEPARATOR = '.'

LITERALS = {
    ResourceNameParts.SERVICE: ('SVC', 'SVC2'),
    ResourceNameParts.CONFIG: ('CFG', 'CFG2'),
}
"""Short and long classification literals, by profile kind."""

_BAD_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')


def decode_path(path: str) -> str:
    """
    Percent-decode a request path, refusing malformed escapes.

    Parameters
    ----------
    path : str

    Returns
    -------
    str

    Raises
    ------
    :class:`.MalformedPathError`
        If a ``%`` is not followed by two hex digits, or if the escaped bytes
        are not valid UTF-8.

    """
    if _BAD_ESCAPE.search(path):
        raise MalformedPathError(f'Malformed escape in path: {path}')
    try:
        return unquote(path, errors='strict')
    except UnicodeDecodeError as e:
        raise MalformedPathError(f'Path is not valid UTF-8: {path}') from e


def _at(segments: List[str], index: int) -> Optional[str]:
    return segments[index] if index < len(segments) else None


def classify(descriptor: RequestDescriptor) -> ResourceNameParts:
    """
    Break a request down into the parts of its profile name.

    The path is decoded and upper-cased, then split on ``/``. Its leading
    segments are read positionally as ``/<product>/plugins/<plugin>/services/
    <service>/<version>/``; everything after the version marker is the
    sub-path, with empty segments dropped.

    Parameters
    ----------
    descriptor : :class:`.RequestDescriptor`

    Returns
    -------
    :class:`.ResourceNameParts`

    Raises
    ------
    :class:`.MalformedPathError`

    """
    segments = decode_path(descriptor.path).upper().split('/')
    product_code = _at(segments, 1)
    plugin_id = _at(segments, 3)
    service_name = _at(segments, 5)
    sub_path = [segment for segment in segments[7:] if segment]
    instance_id = descriptor.instance_id or DEFAULT_INSTANCE_ID
    method = descriptor.method.upper() if descriptor.method else None

    if plugin_id == CONFIG_PLUGIN_ID and service_name == CONFIG_SERVICE_NAME:
        parts = ResourceNameParts(
            kind=ResourceNameParts.CONFIG,
            product_code=product_code,
            instance_id=instance_id,
            plugin_id=_at(sub_path, 0),
            method=method,
            scope=_at(sub_path, 1),
            sub_path=tuple(sub_path[2:])
        )
    else:
        parts = ResourceNameParts(
            kind=ResourceNameParts.SERVICE,
            product_code=product_code,
            instance_id=instance_id,
            plugin_id=plugin_id,
            method=method,
            service_name=service_name,
            sub_path=tuple(sub_path)
        )
    if parts.plugin_id:
        parts = parts._replace(plugin_id=parts.plugin_id.replace('.', '_'))
    return parts


def _validate(parts: ResourceNameParts) -> None:
    required = ['product_code', 'instance_id', 'plugin_id', 'method']
    if parts.kind == ResourceNameParts.SERVICE:
        required.append('service_name')
    else:
        required.append('scope')
    for field in required:
        if not getattr(parts, field):
            raise ValidationError(f'{field} missing')


def base_name(parts: ResourceNameParts, literal: str) -> str:
    """Assemble the profile name of ``parts`` without its sub-path."""
    _validate(parts)
    if parts.kind == ResourceNameParts.SERVICE:
        components = [parts.product_code, parts.instance_id, literal,
                      parts.plugin_id, parts.service_name, parts.method]
    else:
        components = [parts.product_code, parts.instance_id, literal,
                      parts.plugin_id, parts.method, parts.scope]
    return SEPARATOR.join(components)  # type: ignore


def segments_within(segments: Iterable[str], budget: int) -> Tuple[str, ...]:
    """
    Select the longest prefix of ``segments`` that fits in ``budget``.

    Each segment costs its own length plus one separator.
    """
    used = 0
    selected = []
    for segment in segments:
        cost = len(segment) + len(SEPARATOR)
        if used + cost > budget:
            break
        used += cost
        selected.append(segment)
    return tuple(selected)


def _join(base: str, segments: Iterable[str]) -> str:
    return SEPARATOR.join([base, *segments])


def build_profile_name(descriptor: RequestDescriptor) -> str:
    """
    Generate the SAF profile name for a request.

    Parameters
    ----------
    descriptor : :class:`.RequestDescriptor`

    Returns
    -------
    str
        At most :data:`MAX_PROFILE_NAME_LENGTH` characters.

    Raises
    ------
    :class:`.ValidationError`
        If a required name component is missing from the request.
    :class:`.NameTooLongError`
        If the name is too long even without any sub-path.

    """
    parts = classify(descriptor)
    short_literal, long_literal = LITERALS[parts.kind]

    name = _join(base_name(parts, short_literal), parts.sub_path)
    if len(name) <= MAX_PROFILE_NAME_LENGTH:
        return name

    base = base_name(parts, long_literal)
    if len(base) > MAX_PROFILE_NAME_LENGTH:
        raise NameTooLongError(f'SAF resource name too long: {base}')
    included = segments_within(parts.sub_path,
                               MAX_PROFILE_NAME_LENGTH - len(base))
    logger.debug('Profile name truncated to %i of %i sub-path segments',
                 len(included), len(parts.sub_path))
    return _join(base, included)


def make_profile_name_for_request(path: str, method: str,
                                  instance_id: Optional[str] = None) -> str:
    """Shortcut for :func:`build_profile_name`."""
    return build_profile_name(
        RequestDescriptor(path, method, instance_id or DEFAULT_INSTANCE_ID)
    )
