"""Exceptions."""


class ValidationError(RuntimeError):
    """A field required to build a profile name is missing."""


class MalformedPathError(ValidationError):
    """The request path could not be percent-decoded."""


class NameTooLongError(RuntimeError):
    """Even the minimal profile name exceeds the maximum length."""


class TransportFailure(RuntimeError):
    """The security agent could not be reached."""


class BackendDenial(RuntimeError):
    """The security agent explicitly denied access."""


class MalformedBackendResponse(RuntimeError):
    """The security agent returned a response that could not be parsed."""


class ConfigurationError(RuntimeError):
    """Raised when a required service parameter is missing."""
