"""Pydantic configuration models for the monitoring tool."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, List, Optional


class Target(BaseModel):
    """One remote process to monitor."""
    model_config = ConfigDict(frozen=True)

    address: str
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    name: Optional[str] = None

    @field_validator('address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Reject blank addresses."""
        v = v.strip()
        if not v:
            raise ValueError('Target address must not be empty')
        return v

    @property
    def server_name(self) -> str:
        """Name used for keys in summary files; the address when unnamed."""
        return self.name or self.address

    @property
    def display_name(self) -> str:
        """Name shown on console and in logs: "name-address" or the address."""
        if self.name:
            return f"{self.name}-{self.address}"
        return self.address

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.username.strip()
                    and self.password and self.password.strip())


class MethodParam(BaseModel):
    """A remote operation argument, typed once at configuration time."""
    model_config = ConfigDict(frozen=True)

    type_name: str  # signature type, e.g. "int" or "java.lang.String"
    value: Any


class AttributeSpec(BaseModel):
    """One custom metric to poll on every pass."""
    model_config = ConfigDict(frozen=True)

    rate: bool = False
    title: str
    attribute_path: str
    object_pattern: str
    method_name: Optional[str] = None
    method_params: List[MethodParam] = Field(default_factory=list)

    @model_validator(mode='after')
    def require_method_for_invoke(self) -> "AttributeSpec":
        """An invocation needs the name of the operation to call."""
        if self.is_invocation and not self.method_name:
            raise ValueError(f"Attribute '{self.title}' invokes an operation but names none")
        return self

    @property
    def is_invocation(self) -> bool:
        """True when the metric comes from an operation call."""
        return self.attribute_path.strip().lower() == "invoke"

    @property
    def path_segments(self) -> List[str]:
        """Attribute path split on dots, e.g. HeapMemoryUsage.used."""
        return [part for part in self.attribute_path.strip().split(".") if part]

    @property
    def source(self) -> str:
        """Attribute path, or "invoke:<method>" for an operation call."""
        if self.is_invocation:
            return f"invoke:{self.method_name}"
        return self.attribute_path

    def instance_key(self, instance: str) -> str:
        """Metric key of the value read from one matched MBean."""
        return f"{self.source}::{instance}"

    @property
    def key(self) -> str:
        """Identifying key for an unresolved observation of this spec."""
        return self.instance_key(self.object_pattern)


class OutputConfig(BaseModel):
    """Destinations of the per-pass results."""
    console: bool = True
    nagios_file: Optional[str] = "jmxmon.nagios.txt"
    csv_file: Optional[str] = None
    error_file: Optional[str] = "jmxmon.error.log"
    all_gc_values: bool = False


class TransportConfig(BaseModel):
    """Settings for the HTTP transport to the remote agents."""
    timeout_seconds: float = Field(default=10.0, gt=0)
    jolokia_path: str = "/jolokia"
    verify_tls: bool = True


class MonitoringSystemConfig(BaseModel):
    """Root configuration model."""
    period_seconds: int = 10
    targets: List[Target] = Field(min_length=1)
    attributes: List[AttributeSpec] = Field(default_factory=list)
    output: OutputConfig = Field(default_factory=OutputConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)

    @field_validator('period_seconds', mode='before')
    @classmethod
    def clamp_period(cls, v: Any) -> int:
        """Periods below one second are raised to one second."""
        return max(int(v), 1)
