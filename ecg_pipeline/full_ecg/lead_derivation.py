# ecg_pipeline/full_ecg/lead_derivation.py
import numpy as np
from typing import Dict, NamedTuple, Tuple

from ..constants import LEAD_I_ANGLE_DEG, LEAD_II_ANGLE_DEG

# Frontal plane lead axes (degrees, positive = inferior), Einthoven triangle + Goldberger augmented leads
FRONTAL_LEAD_ANGLES_DEG: Dict[str, float] = {
    "lead1": LEAD_I_ANGLE_DEG,
    "lead2": LEAD_II_ANGLE_DEG,
    "lead3": 120.0,
    "avr": -150.0,
    "avl": -30.0,
    "avf": 90.0,
}


class LeadRecord(NamedTuple):
    """The six limb-lead values of one tick."""
    lead1: float
    lead2: float
    lead3: float
    avr: float
    avl: float
    avf: float

    def as_dict(self) -> Dict[str, float]:
        return self._asdict()

    def scaled(self, factor: float) -> "LeadRecord":
        return LeadRecord(*(value * factor for value in self))


def derive_leads(lead1: float, lead2: float) -> Tuple[float, float, float, float]:
    """
    Derive Lead III and the augmented leads from Lead I and Lead II.

    With RA as the reference (RA = 0), LA = Lead I and LL = Lead II:
        III = LL - LA
        aVR = RA - (LA + LL) / 2
        aVL = LA - (RA + LL) / 2
        aVF = LL - (RA + LA) / 2
    """
    right_arm = 0.0
    left_arm = lead1
    left_leg = lead2
    lead3 = left_leg - left_arm
    avr = right_arm - (left_arm + left_leg) / 2
    avl = left_arm - (right_arm + left_leg) / 2
    avf = left_leg - (right_arm + left_arm) / 2
    return lead3, avr, avl, avf


def build_lead_record(lead1: float, lead2: float) -> LeadRecord:
    lead3, avr, avl, avf = derive_leads(lead1, lead2)
    return LeadRecord(lead1, lead2, lead3, avr, avl, avf)


def project_frontal_vector(magnitude: np.ndarray, axis_degrees: float, lead: str) -> np.ndarray:
    """Projects a scalar frontal-plane cardiac vector onto one limb lead axis."""
    angle = np.deg2rad(axis_degrees - FRONTAL_LEAD_ANGLES_DEG[lead])
    return np.asarray(magnitude) * np.cos(angle)
