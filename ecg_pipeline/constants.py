# // ecg_pipeline/constants.py
# --- Acquisition Constants ---
SAMPLE_RATE_HZ = 125
ADC_MAX = 1023            # 10-bit converter, 0..1023 counts
VREF = 5.0                # Converter reference voltage (V)
ADC_MIDSCALE = 512.0
ADC_COUNTS_TO_MV = VREF * 1000.0 / ADC_MAX

# --- Auto-Calibration Constants ---
CALIBRATION_DURATION_SEC = 5.0
REFERENCE_AMPLITUDE = 1.0      # Target half peak-to-peak after calibration (mV)
MIN_AMPLITUDE_FLOOR = 1.0      # Smallest half peak-to-peak accepted (filtered counts)
FALLBACK_BASELINE = 0.0
FALLBACK_GAIN = 1.0

CALIBRATION_START_MESSAGE = "Starting calibration..."
CALIBRATION_COMPLETE_MESSAGE = "Calibration complete"

# --- Filter Coefficient Table ---
# Band-pass Butterworth, 0.5-44.5 Hz at 125 Hz, order 4 as four second-order sections.
# Each row is (a1, a2, b0, b1, b2) with a0 normalised to 1.
ECG_FILTER_SECTIONS = (
    (-0.33650250, 0.04290299, 0.29065929, 0.58131858, 0.29065929),
    (-0.46526277, 0.42480953, 1.00000000, 2.00000000, 1.00000000),
    (-1.96447486, 0.96526407, 1.00000000, -2.00000000, 1.00000000),
    (-1.98588255, 0.98650081, 1.00000000, -2.00000000, 1.00000000),
)
ECG_FILTER_BAND_HZ = (0.5, 44.5)
IDENTITY_SECTION = (0.0, 0.0, 1.0, 0.0, 0.0)

# --- Lead Record Layout ---
RECORD_FIELDS = ("lead1", "lead2", "lead3", "avr", "avl", "avf")

# Frontal-plane angles of the two acquired leads (Einthoven triangle)
LEAD_I_ANGLE_DEG = 0.0
LEAD_II_ANGLE_DEG = 60.0

# --- Synthetic Source Morphology ---
# Centers are relative to the start of the beat (s); amplitudes in mV.
SINUS_PARAMS = {
    "p_center": 0.10, "p_amplitude": 0.15, "p_width": 0.020,
    "q_center": 0.20, "q_amplitude": -0.10, "q_width": 0.008,
    "r_center": 0.22, "r_amplitude": 1.20, "r_width": 0.010,
    "s_center": 0.24, "s_amplitude": -0.25, "s_width": 0.009,
    "t_center": 0.45, "t_amplitude": 0.30, "t_width": 0.040,
}
DEFAULT_HEART_RATE_BPM = 72.0
DEFAULT_ELECTRICAL_AXIS_DEG = 60.0
SYNTHETIC_COUNTS_PER_MV = 100.0

CALIBRATION_PULSE_MV = 1.0
CALIBRATION_PULSE_WIDTH_SEC = 0.2
CALIBRATION_PULSE_PERIOD_SEC = 1.0

SERIAL_BAUD_RATE = 115200

# Upper bound on one /simulate_pipeline run (120 s at 1 kHz)
MAX_SIMULATION_SAMPLES = 120_000
