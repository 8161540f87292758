"""Exception hierarchy for the monitoring tool."""


class JmxMonitoringError(Exception):
    """Base class for all monitoring errors."""


class ConfigError(JmxMonitoringError):
    """Malformed target or attribute specification. Fatal at startup."""


class TransportError(JmxMonitoringError):
    """Failure talking to a remote process. Fails the whole target pass."""


class ConnectionFailure(TransportError):
    """Remote agent unreachable, timed out, or rejected the credentials."""


class RemoteError(TransportError):
    """The remote agent answered with an error payload."""

    def __init__(self, message: str, status: int = 500, error_type: str = ""):
        super().__init__(message)
        self.status = status
        self.error_type = error_type


class AttributeNotFound(RemoteError):
    """Requested MBean or attribute does not exist on the remote side."""


class ValueParseFailure(JmxMonitoringError):
    """A remote value does not have the expected shape."""
