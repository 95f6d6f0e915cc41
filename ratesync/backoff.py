from . import config


class Backoff:
    """Exponential reconnect delay: floor, floor*factor, ... capped at ceiling."""

    def __init__(self, floor: float = None, factor: float = None, ceiling: float = None):
        self.floor = config.RECONNECT_FLOOR_S if floor is None else floor
        self.factor = config.RECONNECT_FACTOR if factor is None else factor
        self.ceiling = config.RECONNECT_CEILING_S if ceiling is None else ceiling
        if self.floor <= 0 or self.factor < 1 or self.ceiling < self.floor:
            raise ValueError(f"bad backoff policy floor={self.floor} factor={self.factor} ceiling={self.ceiling}")
        self.current = self.floor

    def fail(self) -> float:
        """Delay to wait before the next attempt; grows the one after it."""
        delay = self.current
        self.current = min(self.current * self.factor, self.ceiling)
        return delay

    def reset(self):
        self.current = self.floor
