# // ecg_pipeline/signal_sources.py
import logging
import re
from typing import Callable, Optional, Tuple

import numpy as np
import serial

from .api_models import PipelineError
from .constants import (
    ADC_MIDSCALE, ADC_MAX, SYNTHETIC_COUNTS_PER_MV, DEFAULT_HEART_RATE_BPM,
    DEFAULT_ELECTRICAL_AXIS_DEG, SINUS_PARAMS, SERIAL_BAUD_RATE,
    CALIBRATION_PULSE_MV, CALIBRATION_PULSE_WIDTH_SEC, CALIBRATION_PULSE_PERIOD_SEC
)
from .full_ecg.lead_derivation import project_frontal_vector
from .waveform_primitives import sinus_rhythm_waveform, calibration_pulse_waveform

logger = logging.getLogger(__name__)

_NUMBER_PATTERN = re.compile(r"[-+]?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?")


class SignalSource:
    """Delivers the two raw channel values of one tick."""
    name = "abstract"

    def read(self) -> Tuple[float, float]:
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self): return self

    def __exit__(self, *exc_info):
        self.close()
        return False


class LiveChannelPair(SignalSource):
    """Two live converter channels, each read through its own callable."""
    name = "live"

    def __init__(self, read_channel_1: Callable[[], float], read_channel_2: Callable[[], float]):
        self.read_channel_1 = read_channel_1
        self.read_channel_2 = read_channel_2

    def read(self) -> Tuple[float, float]:
        # Both channels are read before either is handed to the filters
        raw1 = float(self.read_channel_1())
        raw2 = float(self.read_channel_2())
        return raw1, raw2


class SerialChannelPair(SignalSource):
    """
    Live channel pair streamed by an acquisition board as text lines of two
    numbers ("raw1,raw2"). A line that does not hold two numbers repeats the
    last good pair so the tick still yields exactly one sample.
    """
    name = "serial"

    def __init__(self, port: Optional[str] = None, baudrate: int = SERIAL_BAUD_RATE,
                 timeout: float = 0.05, serial_port=None):
        if serial_port is None:
            if not port:
                raise PipelineError("A serial port name is required for the serial source")
            serial_port = serial.Serial(port, baudrate, timeout=timeout)
            serial_port.reset_input_buffer()
        self.port = serial_port
        self.last_pair: Tuple[float, float] = (ADC_MIDSCALE, ADC_MIDSCALE)
        self.malformed_lines = 0

    @staticmethod
    def parse_line(line: str) -> Optional[Tuple[float, float]]:
        numbers = _NUMBER_PATTERN.findall(line)
        if len(numbers) != 2:
            return None
        return float(numbers[0]), float(numbers[1])

    def read(self) -> Tuple[float, float]:
        raw = self.port.readline()
        line = raw.decode("utf-8", errors="ignore").strip() if isinstance(raw, bytes) else str(raw).strip()
        pair = self.parse_line(line) if line else None
        if pair is None:
            self.malformed_lines += 1
            if line:
                logger.warning(f"Ignoring serial line {line!r}, repeating last sample")
            return self.last_pair
        self.last_pair = pair
        return pair

    def close(self):
        close = getattr(self.port, "close", None)
        if close is not None:
            close()


class _SampledSource(SignalSource):
    """Source generated from a function of time, sampled at the tick rate."""

    def __init__(self, sample_rate_hz: float, noise_counts: float = 0.0, seed: Optional[int] = None,
                 clip_to_adc: bool = True):
        if sample_rate_hz <= 0:
            raise PipelineError(f"Sample rate must be positive, got {sample_rate_hz}")
        self.sample_rate_hz = float(sample_rate_hz)
        self.noise_counts = noise_counts
        self.clip_to_adc = clip_to_adc
        self.rng = np.random.default_rng(seed)
        self.sample_index = 0

    def channels_mv(self, t_points):
        raise NotImplementedError

    def _to_counts(self, mv):
        counts = ADC_MIDSCALE + np.asarray(mv, dtype=float) * SYNTHETIC_COUNTS_PER_MV
        if self.noise_counts > 0:
            counts = counts + self.rng.normal(0.0, self.noise_counts, size=counts.shape)
        if self.clip_to_adc:
            counts = np.clip(counts, 0, ADC_MAX)
        return counts

    def read(self) -> Tuple[float, float]:
        t = self.sample_index / self.sample_rate_hz
        self.sample_index += 1
        ch1_mv, ch2_mv = self.channels_mv(t)
        return float(self._to_counts(ch1_mv)), float(self._to_counts(ch2_mv))

    def block(self, num_samples: int) -> Tuple[np.ndarray, np.ndarray]:
        """Generate the next `num_samples` pairs at once (advances the source)."""
        t_points = (self.sample_index + np.arange(num_samples)) / self.sample_rate_hz
        self.sample_index += num_samples
        ch1_mv, ch2_mv = self.channels_mv(t_points)
        return self._to_counts(ch1_mv), self._to_counts(ch2_mv)


class SyntheticWaveform(_SampledSource):
    """Sinus rhythm projected onto the Lead I and Lead II axes, in converter counts."""
    name = "synthetic"

    def __init__(self, sample_rate_hz: float, heart_rate_bpm: float = DEFAULT_HEART_RATE_BPM,
                 electrical_axis_degrees: float = DEFAULT_ELECTRICAL_AXIS_DEG,
                 noise_counts: float = 0.0, seed: Optional[int] = None, params: Optional[dict] = None):
        super().__init__(sample_rate_hz, noise_counts=noise_counts, seed=seed)
        if heart_rate_bpm <= 0:
            raise PipelineError("heart_rate_bpm must be positive")
        self.heart_rate_bpm = heart_rate_bpm
        self.electrical_axis_degrees = electrical_axis_degrees
        self.params = params or SINUS_PARAMS

    def channels_mv(self, t_points):
        magnitude = sinus_rhythm_waveform(t_points, self.heart_rate_bpm, self.params)
        lead1 = project_frontal_vector(magnitude, self.electrical_axis_degrees, "lead1")
        lead2 = project_frontal_vector(magnitude, self.electrical_axis_degrees, "lead2")
        return lead1, lead2


class FixedCalibrationPulse(_SampledSource):
    """The same rectangular 1 mV test pulse on both channels."""
    name = "calibration_pulse"

    def __init__(self, sample_rate_hz: float, amplitude_mv: float = CALIBRATION_PULSE_MV,
                 width_sec: float = CALIBRATION_PULSE_WIDTH_SEC, period_sec: float = CALIBRATION_PULSE_PERIOD_SEC,
                 noise_counts: float = 0.0, seed: Optional[int] = None):
        super().__init__(sample_rate_hz, noise_counts=noise_counts, seed=seed)
        self.amplitude_mv = amplitude_mv
        self.width_sec = width_sec
        self.period_sec = period_sec

    def channels_mv(self, t_points):
        pulse = calibration_pulse_waveform(t_points, self.amplitude_mv, self.width_sec, self.period_sec)
        return pulse, pulse


SOURCE_VARIANTS = {
    LiveChannelPair.name: LiveChannelPair,
    SerialChannelPair.name: SerialChannelPair,
    SyntheticWaveform.name: SyntheticWaveform,
    FixedCalibrationPulse.name: FixedCalibrationPulse,
}


def create_signal_source(name: str, **kwargs) -> SignalSource:
    try:
        variant = SOURCE_VARIANTS[name]
    except KeyError:
        raise PipelineError(f"Unknown signal source {name!r}; expected one of {sorted(SOURCE_VARIANTS)}") from None
    return variant(**kwargs)
