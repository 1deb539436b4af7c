from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class Pacer(Protocol):
    def wait(self) -> None: ...


@dataclass(slots=True)
class FixedDelayPacer:
    """Blocking pause between consecutive sends."""

    delay_sec: float
    sleep: Callable[[float], None] = field(default=time.sleep)

    def wait(self) -> None:
        if self.delay_sec <= 0:
            return
        logger.debug("Pacing next send by %.1fs", self.delay_sec)
        self.sleep(self.delay_sec)


class NoDelayPacer:
    def wait(self) -> None:
        return None
