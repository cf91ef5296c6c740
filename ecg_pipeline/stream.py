#!/usr/bin/env python3
"""
Real-time acquisition loop.
Reads the selected signal source at a fixed rate and writes one six-lead
record per tick to stdout, preceded by the calibration status lines.
"""
import argparse
import logging
import sys

from ecg_pipeline.api_models import PipelineConfig
from ecg_pipeline.constants import ADC_COUNTS_TO_MV, SAMPLE_RATE_HZ, CALIBRATION_DURATION_SEC, SERIAL_BAUD_RATE
from ecg_pipeline.emitter import EMITTER_FORMATS
from ecg_pipeline.pipeline import EcgPipeline
from ecg_pipeline.scheduler import SampleScheduler
from ecg_pipeline.signal_sources import create_signal_source

logger = logging.getLogger("ecg_pipeline.stream")


def build_parser():
    parser = argparse.ArgumentParser(description="Stream six-lead ECG records at a fixed sample rate")
    parser.add_argument("--source", choices=["synthetic", "calibration_pulse", "serial"], default="synthetic")
    parser.add_argument("--port", help="Serial port of the acquisition board (serial source)")
    parser.add_argument("--baud", type=int, default=SERIAL_BAUD_RATE, help="Serial baud rate")
    parser.add_argument("--format", choices=sorted(EMITTER_FORMATS), default="json", help="Record line format")
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds (default: run forever)")
    parser.add_argument("--sample-rate", type=float, default=SAMPLE_RATE_HZ, help="Tick rate in Hz")
    parser.add_argument("--calibration", type=float, default=CALIBRATION_DURATION_SEC, help="Calibration window in seconds")
    parser.add_argument("--invert-ch1", action="store_true", help="Invert channel 1 polarity")
    parser.add_argument("--invert-ch2", action="store_true", help="Invert channel 2 polarity")
    parser.add_argument("--units", choices=["mv", "adc"], default="mv",
                        help="mv: emit calibrated values as is; adc: treat them as converter counts and convert to mV")
    parser.add_argument("--heart-rate", type=float, default=72.0, help="Heart rate of the synthetic source (bpm)")
    parser.add_argument("--noise", type=float, default=0.0, help="Gaussian noise added by generated sources (counts)")
    parser.add_argument("--log-level", default="INFO", help="Logging level for messages on stderr")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = PipelineConfig(
        sample_rate_hz=args.sample_rate,
        calibration_duration_sec=args.calibration,
        invert_channel_1=args.invert_ch1,
        invert_channel_2=args.invert_ch2,
        unit_conversion_factor=ADC_COUNTS_TO_MV if args.units == "adc" else 1.0,
    )

    if args.source == "serial":
        source = create_signal_source("serial", port=args.port, baudrate=args.baud)
    elif args.source == "synthetic":
        source = create_signal_source("synthetic", sample_rate_hz=config.sample_rate_hz,
                                      heart_rate_bpm=args.heart_rate, noise_counts=args.noise)
    else:
        source = create_signal_source("calibration_pulse", sample_rate_hz=config.sample_rate_hz,
                                      noise_counts=args.noise)

    emitter = EMITTER_FORMATS[args.format](sys.stdout)
    pipeline = EcgPipeline(config, source=source, emitter=emitter)
    scheduler = SampleScheduler(config.sample_rate_hz)
    try:
        ticks = pipeline.run_realtime(scheduler, duration_sec=args.duration)
    except KeyboardInterrupt:
        ticks = pipeline.tick_index
        logger.info("Interrupted")
    finally:
        pipeline.close()
    logger.info(f"Emitted {ticks} records, {scheduler.overrun_count} late ticks")
    return 0


if __name__ == "__main__":
    sys.exit(main())
