"""
Pytest configuration and shared fixtures for ECG pipeline tests.
"""
import pytest
import numpy as np
from ecg_pipeline.api_models import BiquadCoefficients, PipelineConfig
from ecg_pipeline.emitter import CollectingEmitter
from ecg_pipeline.pipeline import EcgPipeline

@pytest.fixture
def identity_sections():
    """Four pass-through biquad stages."""
    return [BiquadCoefficients.identity() for _ in range(4)]

@pytest.fixture
def default_config():
    """Reference design: 125 Hz, 5 s calibration, 0.5-44.5 Hz band-pass."""
    return PipelineConfig()

@pytest.fixture
def identity_config(identity_sections):
    """Reference timing with a pass-through filter cascade."""
    return PipelineConfig(
        sample_rate_hz=125,
        calibration_duration_sec=5.0,
        filter_sections=identity_sections,
        reference_amplitude=1.0,
        min_amplitude_floor=1.0,
    )

@pytest.fixture
def make_pipeline():
    """Factory returning (pipeline, collecting emitter)."""
    def _make(config, source=None):
        emitter = CollectingEmitter()
        return EcgPipeline(config, source=source, emitter=emitter), emitter
    return _make

@pytest.fixture
def rng():
    return np.random.default_rng(1234)

@pytest.fixture
def tolerance_config():
    """Standard tolerance values for numerical comparisons."""
    return {
        'filter_match': 1e-9,        # our cascade vs scipy sosfilt
        'dc_residual': 1e-6,         # band-pass output after settling on a constant
        'amplitude_tolerance_mv': 0.01,
        'axis_tolerance_degrees': 1.0,
        'rate_tolerance_bpm': 2.0,
    }

@pytest.fixture
def electrical_axis():
    """
    Frontal-plane axis from Lead I and aVF amplitudes.

    aVF is scaled by 2/sqrt(3) so the pair spans an orthonormal basis
    (aVF has length sqrt(3)/2 relative to Lead I).
    Returns a function giving (axis_degrees, axis_interpretation).
    """
    def _axis(lead_i_amplitude, lead_avf_amplitude):
        axis_degrees = float(np.degrees(np.arctan2(lead_avf_amplitude * 2.0 / np.sqrt(3.0), lead_i_amplitude)))
        if -30 <= axis_degrees <= 90:
            interpretation = "Normal"
        elif 90 < axis_degrees <= 180:
            interpretation = "Right Axis Deviation"
        elif -90 <= axis_degrees < -30:
            interpretation = "Left Axis Deviation"
        else:
            interpretation = "Extreme Axis Deviation"
        return axis_degrees, interpretation
    return _axis
