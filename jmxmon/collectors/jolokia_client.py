"""JMX access over HTTP through a Jolokia agent."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config.models import MethodParam, Target, TransportConfig
from ..utils.errors import AttributeNotFound, ConnectionFailure, RemoteError, ValueParseFailure
from .values import as_int, resolve_path, unwrap, wrap


RUNTIME_MBEAN = "java.lang:type=Runtime"
OPERATING_SYSTEM_MBEAN = "java.lang:type=OperatingSystem"
GARBAGE_COLLECTOR_PATTERN = "java.lang:type=GarbageCollector,*"


@dataclass(frozen=True)
class GcReading:
    """Raw cumulative counters of one garbage collector."""

    name: str
    count: int
    time_ms: int


def service_url(address: str, jolokia_path: str = "/jolokia") -> str:
    """
    Build the agent URL for a target address.

    Args:
        address: "host:port" or a full http(s) URL
        jolokia_path: Path of the agent servlet

    Returns:
        str: URL requests are posted to
    """
    if address.startswith(("http://", "https://")):
        return address
    path = jolokia_path if jolokia_path.startswith("/") else f"/{jolokia_path}"
    return f"http://{address}{path}"


class JolokiaConnection:
    """
    Connection to one remote JVM.

    Every call is a blocking HTTP request bounded by the configured timeout.
    Transport problems raise ConnectionFailure, error payloads RemoteError.
    """

    def __init__(
        self,
        url: str,
        auth: Optional[tuple] = None,
        timeout: float = 10.0,
        verify: bool = True,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize connection.

        Args:
            url: Agent URL
            auth: Optional (username, password) for basic auth
            timeout: Connect and read timeout in seconds
            verify: Verify TLS certificates
            logger: Optional logger instance
            transport: Optional httpx transport (tests)
        """
        self.url = url
        self.logger = logger or logging.getLogger(__name__)
        self._client = httpx.Client(
            auth=auth,
            timeout=httpx.Timeout(timeout),
            verify=verify,
            transport=transport
        )

    @classmethod
    def connect(
        cls,
        target: Target,
        config: TransportConfig,
        logger: logging.Logger,
        transport: Optional[httpx.BaseTransport] = None
    ) -> "JolokiaConnection":
        """
        Open a connection and verify the agent answers.

        Raises:
            ConnectionFailure: If the agent is unreachable or rejects the credentials
        """
        auth = (target.username, target.password) if target.has_credentials else None
        connection = cls(
            service_url(target.address, config.jolokia_path),
            auth=auth,
            timeout=config.timeout_seconds,
            verify=config.verify_tls,
            logger=logger,
            transport=transport
        )
        try:
            version = connection.request({"type": "version"})
        except Exception:
            connection.close()
            raise

        agent = version.get("agent") if isinstance(version, dict) else None
        logger.debug(f"Connected to {connection.url} (agent {agent})")
        return connection

    def request(self, payload: Dict[str, Any]) -> Any:
        """
        Post one request and return its value.

        Raises:
            ConnectionFailure: Network error, timeout, auth failure or HTTP error
            AttributeNotFound: MBean or attribute missing
            RemoteError: Any other error reported by the agent
        """
        try:
            response = self._client.post(self.url, json=payload)
        except httpx.TimeoutException as e:
            raise ConnectionFailure(f"Timeout talking to {self.url}") from e
        except httpx.RequestError as e:
            raise ConnectionFailure(f"Request error for {self.url}: {e}") from e

        if response.status_code in (401, 403):
            raise ConnectionFailure(
                f"Authentication failed for {self.url} (HTTP {response.status_code})"
            )
        if response.status_code != 200:
            raise ConnectionFailure(f"HTTP {response.status_code} from {self.url}")

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError(f"Malformed response from {self.url}") from e
        if not isinstance(body, dict):
            raise RemoteError(f"Unexpected response shape from {self.url}")

        status = body.get("status", 200)
        if status != 200:
            error = body.get("error", "unknown error")
            error_type = body.get("error_type", "")
            if status == 404:
                raise AttributeNotFound(error, status, error_type)
            raise RemoteError(error, status, error_type)

        return body.get("value")

    def read_attribute(self, mbean: str, attribute: Any) -> Any:
        """Read one attribute, or several when given a list of names."""
        return self.request({"type": "read", "mbean": mbean, "attribute": attribute})

    def read_counter(self, mbean: str, attribute: str) -> int:
        return as_int(self.read_attribute(mbean, attribute), f"{mbean}/{attribute}")

    def read_composite(self, mbean: str, path: Sequence[str]) -> Any:
        """
        Read a possibly hierarchical attribute such as HeapMemoryUsage.used.

        The first segment is read remotely, the rest is walked locally.

        Raises:
            ValueParseFailure: If the path is empty or a segment does not resolve
        """
        if not path:
            raise ValueParseFailure(f"Empty attribute path for {mbean}")
        value = wrap(self.read_attribute(mbean, path[0]))
        return unwrap(resolve_path(value, path[1:]))

    def invoke(
        self,
        mbean: str,
        operation: str,
        params: Sequence[MethodParam] = ()
    ) -> Any:
        """Invoke an operation with already typed arguments."""
        if params:
            signature = ",".join(param.type_name for param in params)
            operation = f"{operation}({signature})"
        return self.request({
            "type": "exec",
            "mbean": mbean,
            "operation": operation,
            "arguments": [param.value for param in params]
        })

    def list_matching(self, pattern: str) -> List[str]:
        """Names of all MBeans matching an object-name pattern."""
        names = self.request({"type": "search", "mbean": pattern})
        if names is None:
            return []
        if not isinstance(names, list):
            raise ValueParseFailure(f"Search for {pattern} returned {type(names).__name__}")
        return [str(name) for name in names]

    def uptime_ms(self) -> int:
        return self.read_counter(RUNTIME_MBEAN, "Uptime")

    def garbage_collectors(self) -> List[GcReading]:
        """Cumulative counters of every garbage collector of the process."""
        readings = []
        for mbean in self.list_matching(GARBAGE_COLLECTOR_PATTERN):
            values = self.read_attribute(
                mbean, ["Name", "CollectionCount", "CollectionTime"]
            )
            if not isinstance(values, dict):
                raise ValueParseFailure(f"Unexpected collector data for {mbean}")
            readings.append(GcReading(
                name=str(values.get("Name") or _name_property(mbean)),
                count=as_int(values.get("CollectionCount"), "CollectionCount"),
                time_ms=as_int(values.get("CollectionTime"), "CollectionTime")
            ))
        return readings

    def process_cpu_time(self) -> Optional[int]:
        """Process CPU time in nanoseconds, None when the JVM doesn't expose it."""
        value = self.read_attribute(OPERATING_SYSTEM_MBEAN, "ProcessCpuTime")
        if value is None:
            return None
        return as_int(value, "ProcessCpuTime")

    def available_processors(self) -> int:
        return self.read_counter(OPERATING_SYSTEM_MBEAN, "AvailableProcessors")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "JolokiaConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _name_property(mbean: str) -> str:
    """Value of the name= key of an object name, or the whole name."""
    for part in mbean.split(":", 1)[-1].split(","):
        key, _, value = part.partition("=")
        if key == "name":
            return value
    return mbean
