# // ecg_pipeline/waveform_primitives.py
import numpy as np
from .constants import SINUS_PARAMS, CALIBRATION_PULSE_MV, CALIBRATION_PULSE_WIDTH_SEC, CALIBRATION_PULSE_PERIOD_SEC

# --- Waveform Primitive & Single Beat Generation ---
def gaussian_wave(t_points, center, amplitude, width_std_dev):
    if width_std_dev <= 1e-9: return np.zeros_like(t_points, dtype=float)
    return amplitude * np.exp(-((t_points - center)**2) / (2 * width_std_dev**2))

def sinus_beat_waveform(t_in_beat, params=None):
    """
    Scalar frontal-plane cardiac vector magnitude of one sinus beat (mV).

    The beat is the sum of five gaussians (P, Q, R, S, T). `t_in_beat` is the
    time since the start of the beat in seconds; scalar or array.
    """
    params = params or SINUS_PARAMS
    t_points = np.asarray(t_in_beat, dtype=float)
    waveform = np.zeros_like(t_points)
    for wave in ("p", "q", "r", "s", "t"):
        waveform = waveform + gaussian_wave(
            t_points, params[f"{wave}_center"], params[f"{wave}_amplitude"], params[f"{wave}_width"]
        )
    return waveform

def sinus_rhythm_waveform(t_points, heart_rate_bpm, params=None):
    """Periodic sinus rhythm: every beat starts at a multiple of the RR interval."""
    if heart_rate_bpm <= 0:
        raise ValueError("heart_rate_bpm must be positive")
    rr_interval_sec = 60.0 / heart_rate_bpm
    t_in_beat = np.mod(np.asarray(t_points, dtype=float), rr_interval_sec)
    return sinus_beat_waveform(t_in_beat, params)

def calibration_pulse_waveform(t_points, amplitude_mv=CALIBRATION_PULSE_MV,
                               width_sec=CALIBRATION_PULSE_WIDTH_SEC, period_sec=CALIBRATION_PULSE_PERIOD_SEC):
    """Square pulse of `amplitude_mv` lasting `width_sec`, repeated every `period_sec`."""
    if width_sec <= 0 or period_sec <= width_sec:
        raise ValueError("Calibration pulse needs 0 < width_sec < period_sec")
    phase = np.mod(np.asarray(t_points, dtype=float), period_sec)
    return np.where(phase < width_sec, amplitude_mv, 0.0)
