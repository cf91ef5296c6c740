# // ecg_pipeline/scheduler.py
import logging
import math
import time
from typing import Callable, Optional

from .api_models import PipelineError

logger = logging.getLogger(__name__)


class SimulatedClock:
    """Deterministic monotonic clock; `sleep` advances time instead of blocking."""

    def __init__(self, start: float = 0.0):
        self.now = float(start)
        self.sleep_calls = 0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        if seconds < 0:
            raise ValueError("A monotonic clock cannot go backwards")
        self.now += seconds

    def sleep(self, seconds: float):
        self.sleep_calls += 1
        self.advance(max(0.0, seconds))


class SampleScheduler:
    """
    Fixed-rate tick source using an accumulating deadline.

    Each tick advances the stored deadline by exactly one interval
    (`last_tick += interval`) instead of resetting it to "now", so timing
    errors never accumulate. Waiting is a blocking sleep of the remaining
    time (never shorter than `min_sleep_sec`), re-checked until the deadline
    has passed. Exactly one tick is released per deadline: after an overrun
    the following deadlines are already due and are released one at a time
    without being skipped or duplicated.
    """

    def __init__(
        self,
        sample_rate_hz: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        min_sleep_sec: float = 0.0005,
    ):
        if sample_rate_hz is None or not math.isfinite(sample_rate_hz) or sample_rate_hz <= 0:
            raise PipelineError(f"Sample rate must be positive, got {sample_rate_hz}")
        self.sample_rate_hz = float(sample_rate_hz)
        self.interval_sec = 1.0 / self.sample_rate_hz
        self.clock = clock
        self.sleep = sleep
        self.min_sleep_sec = min_sleep_sec
        self.start_time: Optional[float] = None
        self.last_tick: Optional[float] = None
        self.tick_count = 0
        self.overrun_count = 0

    @classmethod
    def simulated(cls, sample_rate_hz: float, clock: Optional[SimulatedClock] = None) -> "SampleScheduler":
        clock = clock or SimulatedClock()
        return cls(sample_rate_hz, clock=clock, sleep=clock.sleep, min_sleep_sec=0.0)

    @property
    def started(self) -> bool:
        return self.start_time is not None

    @property
    def next_deadline(self) -> float:
        if not self.started:
            raise PipelineError("Scheduler has not been started")
        return self.last_tick + self.interval_sec

    def start(self):
        self.start_time = self.clock()
        # The first tick is due immediately
        self.last_tick = self.start_time - self.interval_sec
        self.tick_count = 0
        self.overrun_count = 0

    def elapsed(self) -> float:
        if not self.started:
            return 0.0
        return self.clock() - self.start_time

    def wait_for_next_tick(self) -> int:
        """Block until the next deadline, then claim it. Returns the tick index."""
        if not self.started:
            self.start()
        deadline = self.next_deadline
        now = self.clock()
        while now < deadline:
            self.sleep(max(deadline - now, self.min_sleep_sec))
            now = self.clock()
        if now - deadline > self.interval_sec:
            self.overrun_count += 1
            logger.debug(f"Tick {self.tick_count} released {1000 * (now - deadline):.2f}ms late")
        self.last_tick = deadline
        index = self.tick_count
        self.tick_count += 1
        return index

    def run(
        self,
        on_tick: Callable[[int, float], None],
        max_ticks: Optional[int] = None,
        duration_sec: Optional[float] = None,
    ) -> int:
        """
        Call `on_tick(tick_index, elapsed_sec)` once per deadline.

        Stops after `max_ticks` ticks or once the next deadline would fall
        beyond `duration_sec` from the start; without either it runs for
        the life of the process. Returns the number of ticks released.
        """
        if not self.started:
            self.start()
        released = 0
        while True:
            if max_ticks is not None and released >= max_ticks:
                break
            if duration_sec is not None and self.next_deadline - self.start_time > duration_sec:
                break
            index = self.wait_for_next_tick()
            on_tick(index, self.elapsed())
            released += 1
        if self.overrun_count:
            logger.warning(f"{self.overrun_count} of {released} ticks started more than one interval late")
        return released
