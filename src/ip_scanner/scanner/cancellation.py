"""
Cooperative cancellation for a single scan.
"""
import threading


class CancelFlag:
    """Polled cancellation flag owned by one scan.

    Workers check it at the top of each address loop and between probe phases.
    Setting it is idempotent and safe from any thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"<CancelFlag set={self.is_set}>"


def is_cancelled(flag: "CancelFlag | None") -> bool:
    return flag is not None and flag.is_set
