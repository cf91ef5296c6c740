# // ecg_pipeline/calibration.py
import logging
import math
from enum import Enum
from typing import List, NamedTuple, Sequence

from .api_models import PipelineError
from .constants import (
    CALIBRATION_DURATION_SEC, REFERENCE_AMPLITUDE, MIN_AMPLITUDE_FLOOR,
    FALLBACK_BASELINE, FALLBACK_GAIN
)

logger = logging.getLogger(__name__)


class CalibrationPhase(str, Enum):
    COLLECTING = "collecting"
    CALIBRATED = "calibrated"


class CalibrationSnapshot(NamedTuple):
    baseline: float
    gain: float
    calibrated: bool


class ChannelCalibration:
    """Running extremes and, once fixed, the baseline/gain of one channel."""

    def __init__(self):
        self.minimum = math.inf
        self.maximum = -math.inf
        self.observations = 0
        self.baseline = FALLBACK_BASELINE
        self.gain = FALLBACK_GAIN
        self.amplitude = None
        self.floor_applied = False
        self.used_fallback = False

    def record(self, sample: float):
        if sample < self.minimum:
            self.minimum = sample
        if sample > self.maximum:
            self.maximum = sample
        self.observations += 1

    def as_dict(self) -> dict:
        return {
            "baseline": self.baseline,
            "gain": self.gain,
            "amplitude": self.amplitude,
            "minimum": self.minimum if self.observations else None,
            "maximum": self.maximum if self.observations else None,
            "observations": self.observations,
            "floor_applied": self.floor_applied,
            "used_fallback": self.used_fallback,
        }


class CalibrationEngine:
    """
    One-shot auto-calibration shared by all channels of a pipeline.

    While COLLECTING every observed filtered sample widens its channel's
    min/max and `apply` is the identity. When the shared elapsed-time clock
    reaches the calibration duration each channel gets

        baseline = (max + min) / 2
        gain     = reference_amplitude / max(min_amplitude_floor, (max - min) / 2)

    and the engine becomes CALIBRATED for the rest of the run. A channel that
    saw no samples at all before the deadline falls back to baseline 0 and
    gain 1 (logged as a warning) so the sentinels never reach the arithmetic.
    """

    def __init__(
        self,
        num_channels: int = 2,
        calibration_duration_sec: float = CALIBRATION_DURATION_SEC,
        reference_amplitude: float = REFERENCE_AMPLITUDE,
        min_amplitude_floor: float = MIN_AMPLITUDE_FLOOR,
    ):
        if calibration_duration_sec <= 0:
            raise PipelineError("Calibration duration must be positive")
        if reference_amplitude <= 0 or min_amplitude_floor <= 0:
            raise PipelineError("Reference amplitude and amplitude floor must be positive")
        if not math.isfinite(reference_amplitude / min_amplitude_floor):
            raise PipelineError(
                f"Gain bound {reference_amplitude:g} / {min_amplitude_floor:g} is not finite"
            )
        self.calibration_duration_sec = calibration_duration_sec
        self.reference_amplitude = reference_amplitude
        self.min_amplitude_floor = min_amplitude_floor
        self.channels: List[ChannelCalibration] = [ChannelCalibration() for _ in range(num_channels)]
        self.phase = CalibrationPhase.COLLECTING
        self.elapsed_sec = 0.0
        self.calibrated_at_sec = None

    @classmethod
    def from_config(cls, config, num_channels: int = 2) -> "CalibrationEngine":
        return cls(
            num_channels=num_channels,
            calibration_duration_sec=config.calibration_duration_sec,
            reference_amplitude=config.reference_amplitude,
            min_amplitude_floor=config.min_amplitude_floor,
        )

    @property
    def calibrated(self) -> bool:
        return self.phase is CalibrationPhase.CALIBRATED

    def _channel(self, channel: int) -> ChannelCalibration:
        if not 0 <= channel < len(self.channels):
            raise PipelineError(f"Channel index {channel} out of range (0..{len(self.channels) - 1})")
        return self.channels[channel]

    def snapshot(self, channel: int) -> CalibrationSnapshot:
        cal = self._channel(channel)
        return CalibrationSnapshot(cal.baseline, cal.gain, self.calibrated)

    def observe(self, channel: int, filtered_sample: float, elapsed_sec: float) -> CalibrationSnapshot:
        """Record one channel's sample, then fire the transition if the deadline has passed."""
        cal = self._channel(channel)
        if not self.calibrated:
            cal.record(filtered_sample)
        self.advance(elapsed_sec)
        return self.snapshot(channel)

    def observe_tick(self, filtered_samples: Sequence[float], elapsed_sec: float) -> List[CalibrationSnapshot]:
        """Record every channel's sample of one tick before checking the deadline once."""
        if len(filtered_samples) != len(self.channels):
            raise PipelineError(f"Expected {len(self.channels)} samples per tick, got {len(filtered_samples)}")
        if not self.calibrated:
            for cal, sample in zip(self.channels, filtered_samples):
                cal.record(sample)
        self.advance(elapsed_sec)
        return [self.snapshot(ch) for ch in range(len(self.channels))]

    def advance(self, elapsed_sec: float) -> bool:
        """Move the shared clock forward. Returns True on the tick the transition fires."""
        self.elapsed_sec = elapsed_sec
        if self.calibrated or elapsed_sec < self.calibration_duration_sec:
            return False
        self._finish(elapsed_sec)
        return True

    def _finish(self, elapsed_sec: float):
        for index, cal in enumerate(self.channels):
            if cal.observations == 0:
                cal.baseline = FALLBACK_BASELINE
                cal.gain = FALLBACK_GAIN
                cal.used_fallback = True
                logger.warning(
                    f"Channel {index + 1}: no samples observed during the {self.calibration_duration_sec:.2f}s window, "
                    f"using baseline={FALLBACK_BASELINE} gain={FALLBACK_GAIN}"
                )
                continue
            cal.baseline = (cal.maximum + cal.minimum) / 2.0
            measured = (cal.maximum - cal.minimum) / 2.0
            if measured < self.min_amplitude_floor:
                cal.floor_applied = True
                logger.warning(
                    f"Channel {index + 1}: amplitude {measured:.4g} below floor {self.min_amplitude_floor:.4g}, clamping"
                )
            cal.amplitude = max(self.min_amplitude_floor, measured)
            cal.gain = self.reference_amplitude / cal.amplitude
        self.phase = CalibrationPhase.CALIBRATED
        self.calibrated_at_sec = elapsed_sec
        details = ", ".join(
            f"ch{i + 1} baseline={c.baseline:.4g} gain={c.gain:.4g}" for i, c in enumerate(self.channels)
        )
        logger.info(f"Calibration complete at {elapsed_sec:.3f}s: {details}")

    def apply(self, channel: int, filtered_sample: float) -> float:
        cal = self._channel(channel)
        if not self.calibrated:
            return filtered_sample
        return (filtered_sample - cal.baseline) * cal.gain

    def summary(self) -> dict:
        return {
            "phase": self.phase.value,
            "calibrated_at_sec": self.calibrated_at_sec,
            "channels": [cal.as_dict() for cal in self.channels],
        }
