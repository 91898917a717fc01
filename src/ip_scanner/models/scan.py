from pydantic import Field, computed_field, field_validator

from .common import BasePydanticModel, Transport


class ServiceDefinition(BasePydanticModel):
    """A (name, port, transport) triple the scanner probes on every live host."""

    model_config = {
        "extra": "ignore", # Exported files from other tools may carry ids etc.
        "frozen": True,
    }

    name: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    transport: Transport = Transport.TCP
    enabled: bool = Field(default=True, alias="isEnabled")

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("service name must not be blank")
        return value

    @property
    def identity_key(self) -> str:
        return f"{self.name.lower()}:{self.port}"

    @property
    def display_name(self) -> str:
        if self.transport == Transport.TCP:
            return self.name
        return f"{self.name} ({Transport(self.transport).value})"


def services_summary(services: list[ServiceDefinition]) -> str:
    return ", ".join(service.display_name for service in services)


class ScanResult(BasePydanticModel):
    """Outcome of scanning one address. Immutable once built."""

    model_config = {"frozen": True}

    address: str
    sort_key: int # Numeric value of the address
    hostname: str | None = None
    mac_address: str | None = None
    is_alive: bool = False
    open_services: list[ServiceDefinition] = Field(default_factory=list)

    @computed_field # type: ignore[prop-decorator]
    @property
    def summary(self) -> str:
        return services_summary(self.open_services)

    @property
    def status_text(self) -> str:
        return "Alive" if self.is_alive else "No response"


class NetworkInterface(BasePydanticModel):
    name: str
    ip_address: str
    netmask: int # 32-bit mask, host byte order

    @property
    def id(self) -> str:
        return f"{self.name}-{self.ip_address}"
