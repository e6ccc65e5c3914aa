import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

CONFIRMED = "confirmed"
NOT_YET_VISIBLE = "not_yet_visible"
FAILED = "failed"


@dataclass(frozen=True)
class PollResult:
    state: str
    value: Any = None
    attempts: int = 0

    @property
    def confirmed(self) -> bool:
        return self.state == CONFIRMED


def poll(
    fetch: Callable[[], Any],
    attempts: int = 20,
    interval: float = 0.5,
    is_failure: Optional[Callable[[Any], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Call ``fetch`` until it returns something truthy, at most ``attempts`` times.

    ``is_failure`` lets the caller stop early on a terminal negative value.
    Exceptions raised by ``fetch`` propagate.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        value = fetch()
        if value is not None and is_failure is not None and is_failure(value):
            return PollResult(FAILED, value, attempt)
        if value:
            return PollResult(CONFIRMED, value, attempt)
        if attempt < attempts:
            sleep(interval)
    return PollResult(NOT_YET_VISIBLE, None, attempts)
