from enum import Enum

from pydantic import BaseModel


class BasePydanticModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "use_enum_values": True,
    }

class Transport(str, Enum):
    TCP = "tcp"
    UDP = "udp"

class ProbeOutcome(str, Enum):
    OPEN = "open"
    CLOSED = "closed" # Connection actively refused
    TIMEOUT_OR_ERROR = "timeout_or_error"

    @property
    def responded(self) -> bool:
        """True when the remote IP stack answered at all (open or refused)."""
        return self is not ProbeOutcome.TIMEOUT_OR_ERROR

class ScanState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
