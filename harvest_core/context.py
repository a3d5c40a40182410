"""Run-scoped state threaded through one connector run."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .gate import GateState


@dataclass
class RunContext:
    platform: str
    host: Any
    run_log: Any = None
    gate_state: GateState = GateState.UNKNOWN
    # scratch values shared between connector steps (tokens, urls, ...)
    data: Dict[str, Any] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def heading(self, text: str) -> None:
        if self.run_log is not None:
            self.run_log.log_heading(text)

    def set(self, key: str, value: Any) -> Any:
        self.data[key] = value
        return value

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self.data.get(key, default)
