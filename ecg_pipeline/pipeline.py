# // ecg_pipeline/pipeline.py
import logging
from typing import List, Optional

from .api_models import PipelineConfig
from .calibration import CalibrationEngine
from .constants import CALIBRATION_START_MESSAGE, CALIBRATION_COMPLETE_MESSAGE
from .emitter import RecordEmitter, CollectingEmitter
from .filtering.biquad import ChannelFilterBank
from .full_ecg.lead_derivation import LeadRecord, build_lead_record
from .scheduler import SampleScheduler
from .signal_sources import SignalSource

logger = logging.getLogger(__name__)


class EcgPipeline:
    """
    Acquisition-to-record pipeline for one pair of input channels.

    Every tick: read both raw channels, apply polarity inversion, run each
    through its own filter cascade, feed the calibration engine, apply the
    calibration (identity while collecting), derive the four extra leads,
    apply the unit conversion and hand the record to the emitter. Each
    instance owns its filters and calibration state.
    """

    def __init__(self, config: Optional[PipelineConfig] = None, source: Optional[SignalSource] = None,
                 emitter: Optional[RecordEmitter] = None):
        self.config = config or PipelineConfig()
        self.source = source
        self.emitter = emitter if emitter is not None else CollectingEmitter()
        self.filters = ChannelFilterBank(self.config.filter_sections, num_channels=2)
        self.calibration = CalibrationEngine.from_config(self.config, num_channels=2)
        self._polarity = (
            -1.0 if self.config.invert_channel_1 else 1.0,
            -1.0 if self.config.invert_channel_2 else 1.0,
        )
        self.tick_index = 0
        self.calibrated_at_tick: Optional[int] = None
        logger.info(
            f"Pipeline ready: {self.config.sample_rate_hz:g} Hz, {len(self.config.filter_sections)} biquad stages, "
            f"{self.config.calibration_duration_sec:g}s calibration window, "
            f"source={getattr(self.source, 'name', None)}"
        )

    @property
    def calibrated(self) -> bool:
        return self.calibration.calibrated

    def process_sample(self, raw1: float, raw2: float, elapsed_sec: float) -> LeadRecord:
        if self.tick_index == 0:
            logger.info(CALIBRATION_START_MESSAGE)
            self.emitter.status(CALIBRATION_START_MESSAGE)

        filtered = [
            self.filters.process(0, self._polarity[0] * raw1),
            self.filters.process(1, self._polarity[1] * raw2),
        ]

        was_calibrated = self.calibration.calibrated
        self.calibration.observe_tick(filtered, elapsed_sec)
        if self.calibration.calibrated and not was_calibrated:
            self.calibrated_at_tick = self.tick_index
            self.emitter.status(CALIBRATION_COMPLETE_MESSAGE)

        lead1 = self.calibration.apply(0, filtered[0])
        lead2 = self.calibration.apply(1, filtered[1])
        record = build_lead_record(lead1, lead2).scaled(self.config.unit_conversion_factor)

        self.emitter.emit(record)
        self.tick_index += 1
        return record

    def tick(self, elapsed_sec: float) -> LeadRecord:
        if self.source is None:
            raise RuntimeError("Pipeline has no signal source attached")
        raw1, raw2 = self.source.read()
        return self.process_sample(raw1, raw2, elapsed_sec)

    def run_offline(self, num_ticks: int) -> List[LeadRecord]:
        """Process `num_ticks` ticks back to back with elapsed time derived from the tick index."""
        records = []
        rate = self.config.sample_rate_hz
        for _ in range(num_ticks):
            records.append(self.tick(self.tick_index / rate))
        return records

    def run_realtime(self, scheduler: Optional[SampleScheduler] = None, max_ticks: Optional[int] = None,
                     duration_sec: Optional[float] = None) -> int:
        """Drive ticks off a SampleScheduler; elapsed time comes from the scheduler's clock."""
        scheduler = scheduler or SampleScheduler(self.config.sample_rate_hz)
        return scheduler.run(lambda _index, elapsed: self.tick(elapsed), max_ticks=max_ticks, duration_sec=duration_sec)

    def summary(self) -> dict:
        return {
            "ticks": self.tick_index,
            "calibrated_at_tick": self.calibrated_at_tick,
            "calibration": self.calibration.summary(),
        }

    def close(self):
        if self.source is not None:
            self.source.close()
        self.emitter.close()
