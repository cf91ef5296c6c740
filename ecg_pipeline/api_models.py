# // ecg_pipeline/api_models.py
import math
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import (
    SAMPLE_RATE_HZ, CALIBRATION_DURATION_SEC, REFERENCE_AMPLITUDE, MIN_AMPLITUDE_FLOOR,
    ECG_FILTER_SECTIONS, IDENTITY_SECTION, DEFAULT_HEART_RATE_BPM, DEFAULT_ELECTRICAL_AXIS_DEG,
    MAX_SIMULATION_SAMPLES
)


class PipelineError(ValueError):
    """Raised when a pipeline cannot be built from the given arguments."""


class BiquadCoefficients(BaseModel):
    """Transfer function of one second-order section, a0 normalised to 1."""
    model_config = ConfigDict(frozen=True)

    a1: float
    a2: float
    b0: float
    b1: float
    b2: float

    @classmethod
    def from_row(cls, row) -> "BiquadCoefficients":
        a1, a2, b0, b1, b2 = row
        return cls(a1=a1, a2=a2, b0=b0, b1=b1, b2=b2)

    @classmethod
    def identity(cls) -> "BiquadCoefficients":
        return cls.from_row(IDENTITY_SECTION)

    @model_validator(mode="after")
    def _check_finite(self):
        for name in ("a1", "a2", "b0", "b1", "b2"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"coefficient {name} must be finite")
        return self

    @property
    def stable(self) -> bool:
        """Stability triangle test: both poles strictly inside the unit circle."""
        return abs(self.a2) < 1.0 and abs(self.a1) < 1.0 + self.a2


def reference_filter_sections() -> List[BiquadCoefficients]:
    return [BiquadCoefficients.from_row(row) for row in ECG_FILTER_SECTIONS]


class PipelineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    sample_rate_hz: float = Field(SAMPLE_RATE_HZ, gt=0, description="Fixed tick rate of the acquisition loop.")
    calibration_duration_sec: float = Field(CALIBRATION_DURATION_SEC, gt=0, description="Length of the warm-up window used to learn baseline and gain.")
    invert_channel_1: bool = Field(False, description="Negate channel 1 raw samples before filtering.")
    invert_channel_2: bool = Field(False, description="Negate channel 2 raw samples before filtering.")
    filter_sections: List[BiquadCoefficients] = Field(
        default_factory=reference_filter_sections, min_length=1,
        description="Cascade applied, in order, to each channel. Shared by both channels."
    )
    unit_conversion_factor: float = Field(1.0, description="Linear factor applied to every lead right before emission.")
    reference_amplitude: float = Field(REFERENCE_AMPLITUDE, gt=0, description="Half peak-to-peak amplitude a calibrated channel is scaled to.")
    min_amplitude_floor: float = Field(MIN_AMPLITUDE_FLOOR, gt=0, description="Lower clamp on the measured amplitude; bounds the gain.")

    @field_validator("sample_rate_hz", "calibration_duration_sec", "unit_conversion_factor",
                     "reference_amplitude", "min_amplitude_floor")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("must be finite")
        return value

    @field_validator("filter_sections")
    @classmethod
    def _stable_sections(cls, sections: List[BiquadCoefficients]) -> List[BiquadCoefficients]:
        unstable = [index for index, section in enumerate(sections) if not section.stable]
        if unstable:
            raise ValueError(f"filter stages {unstable} have poles on or outside the unit circle")
        return sections

    @model_validator(mode="after")
    def _bounded_gain(self):
        if not math.isfinite(self.max_gain):
            raise ValueError("reference_amplitude / min_amplitude_floor must be finite")
        return self

    @property
    def tick_interval_sec(self) -> float:
        return 1.0 / self.sample_rate_hz

    @property
    def max_gain(self) -> float:
        return self.reference_amplitude / self.min_amplitude_floor


class SimulationRequest(BaseModel):
    source: str = Field("synthetic", pattern="^(synthetic|calibration_pulse)$")
    duration_sec: float = Field(10.0, gt=0, le=120.0)
    heart_rate_bpm: float = Field(DEFAULT_HEART_RATE_BPM, ge=20, le=250)
    electrical_axis_degrees: float = Field(DEFAULT_ELECTRICAL_AXIS_DEG, ge=-180, le=180)
    noise_counts: float = Field(0.0, ge=0, description="Standard deviation of gaussian noise added to raw counts.")
    seed: Optional[int] = Field(None, description="Seed for the noise generator.")
    filter_band_hz: Optional[Tuple[float, float]] = Field(
        None, description="Design a Butterworth band-pass instead of using config.filter_sections."
    )
    filter_order: int = Field(4, ge=1, le=8)
    config: PipelineConfig = Field(default_factory=PipelineConfig)

    @field_validator("filter_band_hz")
    @classmethod
    def _band_ordered(cls, band):
        if band is not None and not (0 < band[0] < band[1]):
            raise ValueError("filter_band_hz must satisfy 0 < low < high")
        return band

    @model_validator(mode="after")
    def _bounded_run(self):
        num_samples = self.duration_sec * self.config.sample_rate_hz
        if num_samples > MAX_SIMULATION_SAMPLES:
            raise ValueError(
                f"duration_sec * sample_rate_hz = {num_samples:g} exceeds {MAX_SIMULATION_SAMPLES} samples"
            )
        return self
