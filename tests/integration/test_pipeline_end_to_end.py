"""
End-to-end pipeline tests: raw reads -> filter -> calibration -> lead derivation -> emission.
"""
import io
import itertools
import pytest
import numpy as np
from ecg_pipeline.api_models import PipelineConfig
from ecg_pipeline.constants import CALIBRATION_START_MESSAGE, CALIBRATION_COMPLETE_MESSAGE, ADC_MIDSCALE
from ecg_pipeline.emitter import JsonLinesEmitter
from ecg_pipeline.full_ecg.lead_derivation import LeadRecord
from ecg_pipeline.pipeline import EcgPipeline
from ecg_pipeline.scheduler import SampleScheduler, SimulatedClock
from ecg_pipeline.signal_sources import FixedCalibrationPulse, LiveChannelPair, SyntheticWaveform

FS = 125
WINDOW_TICKS = 5 * FS  # ticks strictly inside the calibration window

def constant_source(value1, value2):
    return LiveChannelPair(lambda: value1, lambda: value2)

def sequence_source(values1, values2):
    it1, it2 = iter(values1), iter(values2)
    return LiveChannelPair(lambda: next(it1), lambda: next(it2))

class TestCalibrationScenarios:

    @pytest.mark.integration
    def test_constant_channels_calibrate_to_zero(self, identity_sections, make_pipeline):
        """Constant 100 / 150 through a pass-through cascade: baselines removed, gain floored."""
        config = PipelineConfig(filter_sections=identity_sections, reference_amplitude=1.0, min_amplitude_floor=0.5)
        pipeline, emitter = make_pipeline(config, constant_source(100.0, 150.0))

        pipeline.run_offline(WINDOW_TICKS + 1)  # the last of these reaches the deadline
        record = pipeline.run_offline(1)[0]

        ch1, ch2 = pipeline.calibration.channels
        assert pipeline.calibrated
        assert ch1.baseline == 100.0
        assert ch2.baseline == 150.0
        assert ch1.gain == ch2.gain == 1.0 / 0.5
        assert record == LeadRecord(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
        assert pipeline.calibrated_at_tick == WINDOW_TICKS
        assert emitter.messages == [CALIBRATION_START_MESSAGE, CALIBRATION_COMPLETE_MESSAGE]

    @pytest.mark.integration
    def test_unit_square_wave_passes_unchanged(self, identity_sections, make_pipeline):
        """Channel 1 alternating -1/+1 with reference 1 gives gain 1, baseline 0."""
        config = PipelineConfig(filter_sections=identity_sections, reference_amplitude=1.0, min_amplitude_floor=0.1)
        alternating = itertools.cycle([-1.0, 1.0])
        pipeline, _ = make_pipeline(config, LiveChannelPair(lambda: next(alternating), lambda: 0.0))

        pipeline.run_offline(WINDOW_TICKS + 1)
        assert pipeline.calibration.channels[0].baseline == 0.0
        assert pipeline.calibration.channels[0].gain == 1.0

        for raw in (-1.0, 0.25, 1.0, -0.75):
            record = pipeline.process_sample(raw, 0.0, 10.0)
            assert record.lead1 == raw

    @pytest.mark.integration
    def test_output_is_filtered_input_before_deadline(self, identity_sections, make_pipeline, rng):
        config = PipelineConfig(filter_sections=identity_sections)
        raw1 = rng.normal(500, 40, WINDOW_TICKS)
        raw2 = rng.normal(520, 40, WINDOW_TICKS)
        pipeline, emitter = make_pipeline(config, sequence_source(raw1, raw2))

        records = pipeline.run_offline(WINDOW_TICKS)

        assert not pipeline.calibrated
        assert [r.lead1 for r in records] == list(raw1)
        assert [r.lead2 for r in records] == list(raw2)
        assert emitter.messages == [CALIBRATION_START_MESSAGE]

    @pytest.mark.integration
    def test_calibration_pulse_maps_to_reference_amplitude(self, identity_sections, make_pipeline):
        """The 1 mV test pulse spans exactly +/- reference amplitude after calibration."""
        config = PipelineConfig(filter_sections=identity_sections, reference_amplitude=1.0)
        pipeline, _ = make_pipeline(config, FixedCalibrationPulse(FS))

        records = pipeline.run_offline(8 * FS)
        calibrated = np.array([r.lead1 for r in records[WINDOW_TICKS + 1:]])

        assert np.allclose(np.abs(calibrated), 1.0)
        assert np.any(calibrated > 0) and np.any(calibrated < 0)
        assert all(r.lead3 == 0.0 for r in records[WINDOW_TICKS + 1:])

    @pytest.mark.integration
    def test_calibrated_stays_true(self, default_config, make_pipeline):
        pipeline, _ = make_pipeline(default_config, SyntheticWaveform(FS, noise_counts=2.0, seed=3))
        pipeline.run_offline(WINDOW_TICKS + 1)
        assert pipeline.calibrated
        for _ in range(3 * FS):
            pipeline.run_offline(1)
            assert pipeline.calibrated


class TestPipelineOptions:

    @pytest.mark.integration
    def test_polarity_inversion(self, identity_sections, make_pipeline):
        config = PipelineConfig(filter_sections=identity_sections, invert_channel_1=True)
        pipeline, _ = make_pipeline(config, constant_source(300.0, 200.0))
        record = pipeline.run_offline(1)[0]
        assert record.lead1 == -300.0
        assert record.lead2 == 200.0

    @pytest.mark.integration
    def test_unit_conversion_scales_every_lead(self, identity_sections, make_pipeline):
        base, _ = make_pipeline(PipelineConfig(filter_sections=identity_sections), constant_source(3.0, 5.0))
        scaled, _ = make_pipeline(
            PipelineConfig(filter_sections=identity_sections, unit_conversion_factor=4.0), constant_source(3.0, 5.0)
        )
        plain = base.run_offline(1)[0]
        converted = scaled.run_offline(1)[0]
        assert converted == LeadRecord(*(4.0 * value for value in plain))

    @pytest.mark.integration
    def test_lead_identities_hold_on_real_signal(self, default_config, make_pipeline):
        pipeline, emitter = make_pipeline(default_config, SyntheticWaveform(FS, noise_counts=3.0, seed=11))
        pipeline.run_offline(10 * FS)
        for record in emitter.records:
            assert record.lead3 == record.lead2 - record.lead1
            assert abs(record.avr + record.avl + record.avf) < 1e-9 * (1 + abs(record.lead1) + abs(record.lead2))
            assert all(np.isfinite(record))

    @pytest.mark.integration
    def test_pipelines_do_not_share_state(self, default_config, make_pipeline):
        """Interleaving two pipelines gives the same output as running one alone."""
        alone, _ = make_pipeline(default_config, SyntheticWaveform(FS, seed=1, noise_counts=4.0))
        expected = alone.run_offline(800)

        first, _ = make_pipeline(default_config, SyntheticWaveform(FS, seed=1, noise_counts=4.0))
        second, _ = make_pipeline(default_config, FixedCalibrationPulse(FS, noise_counts=9.0, seed=2))
        interleaved = []
        for _ in range(800):
            interleaved.extend(first.run_offline(1))
            second.run_offline(1)

        assert interleaved == expected

    @pytest.mark.integration
    def test_tick_without_source(self, default_config):
        with pytest.raises(RuntimeError):
            EcgPipeline(default_config).tick(0.0)

    @pytest.mark.integration
    def test_summary(self, identity_config, make_pipeline):
        pipeline, _ = make_pipeline(identity_config, constant_source(1.0, 2.0))
        pipeline.run_offline(WINDOW_TICKS + 5)
        summary = pipeline.summary()
        assert summary["ticks"] == WINDOW_TICKS + 5
        assert summary["calibrated_at_tick"] == WINDOW_TICKS
        assert summary["calibration"]["phase"] == "calibrated"
        assert len(summary["calibration"]["channels"]) == 2


class TestRealtimeLoop:

    @pytest.mark.integration
    def test_scheduler_drives_calibration(self, identity_config, make_pipeline):
        clock = SimulatedClock()
        pipeline, emitter = make_pipeline(identity_config, constant_source(ADC_MIDSCALE, ADC_MIDSCALE))
        scheduler = SampleScheduler.simulated(FS, clock)

        released = pipeline.run_realtime(scheduler, max_ticks=700)

        assert released == 700
        assert len(emitter) == 700
        assert pipeline.calibrated
        assert pipeline.calibrated_at_tick in (WINDOW_TICKS, WINDOW_TICKS + 1)
        assert clock() == pytest.approx(699 / FS)

    @pytest.mark.integration
    def test_json_stream_output(self, identity_config):
        stream = io.StringIO()
        pipeline = EcgPipeline(identity_config, source=constant_source(10.0, 20.0), emitter=JsonLinesEmitter(stream))
        pipeline.run_offline(WINDOW_TICKS + 3)

        lines = stream.getvalue().splitlines()
        assert lines[0] == CALIBRATION_START_MESSAGE
        assert lines.count(CALIBRATION_COMPLETE_MESSAGE) == 1
        # start line + records + completion line
        assert len(lines) == WINDOW_TICKS + 3 + 2
        assert lines[-1] == '{"lead1": 0.0, "lead2": 0.0, "lead3": 0.0, "avr": 0.0, "avl": 0.0, "avf": 0.0}'
