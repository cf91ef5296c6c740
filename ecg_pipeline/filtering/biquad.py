# ecg_pipeline/filtering/biquad.py
import numpy as np
from typing import List, Sequence
from scipy import signal as sp_signal

from ..api_models import BiquadCoefficients, PipelineError


class BiquadState:
    """Two feedback memory cells of one (channel, stage) pair."""
    __slots__ = ("z1", "z2")

    def __init__(self):
        self.z1 = 0.0
        self.z2 = 0.0

    def __repr__(self): return f"BiquadState(z1={self.z1:.6g}, z2={self.z2:.6g})"


class BiquadStage:
    """
    One second-order IIR section in direct form II.

    x   = in - a1*z1 - a2*z2
    out = b0*x + b1*z1 + b2*z2
    z2, z1 = z1, x
    """
    __slots__ = ("coefficients", "state", "_a1", "_a2", "_b0", "_b1", "_b2")

    def __init__(self, coefficients: BiquadCoefficients):
        self.coefficients = coefficients
        self.state = BiquadState()
        # Unpacked once; the per-sample path only touches floats
        self._a1 = float(coefficients.a1)
        self._a2 = float(coefficients.a2)
        self._b0 = float(coefficients.b0)
        self._b1 = float(coefficients.b1)
        self._b2 = float(coefficients.b2)

    def process(self, sample: float) -> float:
        state = self.state
        z1, z2 = state.z1, state.z2
        x = sample - self._a1 * z1 - self._a2 * z2
        out = self._b0 * x + self._b1 * z1 + self._b2 * z2
        state.z2 = z1
        state.z1 = x
        return out


class ChannelFilter:
    """Fixed cascade of biquad stages for one raw channel. Stage i feeds stage i+1."""

    def __init__(self, sections: Sequence[BiquadCoefficients]):
        if len(sections) == 0:
            raise PipelineError("A channel filter needs at least one biquad stage")
        # Each stage gets its own fresh state; coefficients are shared read-only objects
        self.stages: List[BiquadStage] = [BiquadStage(coeffs) for coeffs in sections]

    def process(self, sample: float) -> float:
        out = float(sample)
        for stage in self.stages:
            out = stage.process(out)
        return out

    def process_block(self, samples) -> np.ndarray:
        return np.array([self.process(s) for s in samples], dtype=float)

    @property
    def states(self) -> List[BiquadState]:
        return [stage.state for stage in self.stages]


class ChannelFilterBank:
    """
    Independent filter cascades, one per input channel, built from one shared
    coefficient table. Channels never share state.
    """

    def __init__(self, sections: Sequence[BiquadCoefficients], num_channels: int = 2):
        self.sections = tuple(sections)
        self.channels = [ChannelFilter(self.sections) for _ in range(num_channels)]

    def process(self, channel_index: int, raw_sample: float) -> float:
        if not 0 <= channel_index < len(self.channels):
            raise PipelineError(f"Channel index {channel_index} out of range (0..{len(self.channels) - 1})")
        return self.channels[channel_index].process(raw_sample)

    def __len__(self): return len(self.channels)


def to_sos(sections: Sequence[BiquadCoefficients]) -> np.ndarray:
    """Coefficient table as a scipy second-order-sections array (rows b0 b1 b2 1 a1 a2)."""
    return np.array([[c.b0, c.b1, c.b2, 1.0, c.a1, c.a2] for c in sections], dtype=float)


def design_bandpass_sections(low_hz: float, high_hz: float, sample_rate_hz: float, order: int = 4) -> List[BiquadCoefficients]:
    """
    Design a Butterworth band-pass as a cascade of biquads.

    Args:
        low_hz: Lower -3 dB corner (Hz)
        high_hz: Upper -3 dB corner (Hz), must be below Nyquist
        sample_rate_hz: Sampling frequency (Hz)
        order: Butterworth prototype order; yields `order` sections

    Returns:
        List of BiquadCoefficients, a0 normalised to 1
    """
    nyquist = 0.5 * sample_rate_hz
    if not (0 < low_hz < high_hz < nyquist):
        raise PipelineError(
            f"Band [{low_hz}, {high_hz}] Hz is not inside (0, {nyquist}) Hz for fs={sample_rate_hz}"
        )
    sos = sp_signal.butter(order, [low_hz, high_hz], btype="bandpass", fs=sample_rate_hz, output="sos")
    sections = []
    for b0, b1, b2, a0, a1, a2 in sos:
        sections.append(BiquadCoefficients(
            a1=a1 / a0, a2=a2 / a0, b0=b0 / a0, b1=b1 / a0, b2=b2 / a0
        ))
    return sections
