"""Hard caps on iterations and token cost."""

from dataclasses import dataclass


@dataclass
class WatchdogConfig:
    max_iterations: int
    max_token_cost: int = 0  # 0 = unlimited


class Watchdog:
    """Counts iterations and tokens; trips when a threshold is reached."""

    def __init__(self, config: WatchdogConfig):
        self.config = config
        self.iterations = 0
        self.total_tokens = 0
        self.reason: str | None = None

    def tick(self, tokens_used: int = 0) -> None:
        self.iterations += 1
        self.total_tokens += tokens_used

    def tripped(self) -> bool:
        if self.reason is not None:
            return True
        if self.iterations >= self.config.max_iterations:
            self.reason = "max_iterations"
        elif 0 < self.config.max_token_cost <= self.total_tokens:
            self.reason = "max_token_cost"
        return self.reason is not None
