# // ecg_pipeline/emitter.py
import json
import sys
from typing import List, TextIO

from .constants import RECORD_FIELDS
from .full_ecg.lead_derivation import LeadRecord


class RecordEmitter:
    """Hands one LeadRecord per tick to the consumer, plus calibration status lines."""

    def emit(self, record: LeadRecord):
        raise NotImplementedError

    def status(self, message: str):
        pass

    def close(self):
        pass


class _StreamEmitter(RecordEmitter):

    def __init__(self, stream: TextIO = None, precision: int = 4, flush: bool = True):
        self.stream = stream if stream is not None else sys.stdout
        self.precision = precision
        self.flush = flush

    def _write(self, line: str):
        self.stream.write(line + "\n")
        if self.flush:
            self.stream.flush()

    def status(self, message: str):
        self._write(message)


class JsonLinesEmitter(_StreamEmitter):
    """One JSON object per line: {"lead1": .., "lead2": .., "lead3": .., "avr": .., "avl": .., "avf": ..}."""

    def emit(self, record: LeadRecord):
        payload = {field: round(value, self.precision) for field, value in zip(RECORD_FIELDS, record)}
        self._write(json.dumps(payload))


class CsvEmitter(_StreamEmitter):
    """Six comma-separated values per line in record field order."""

    def emit(self, record: LeadRecord):
        self._write(",".join(f"{value:.{self.precision}f}" for value in record))


class CollectingEmitter(RecordEmitter):
    """Keeps every record and status message in memory."""

    def __init__(self):
        self.records: List[LeadRecord] = []
        self.messages: List[str] = []

    def emit(self, record: LeadRecord):
        self.records.append(record)

    def status(self, message: str):
        self.messages.append(message)

    def leads(self) -> dict:
        return {field: [getattr(record, field) for record in self.records] for field in RECORD_FIELDS}

    def __len__(self): return len(self.records)


EMITTER_FORMATS = {"json": JsonLinesEmitter, "csv": CsvEmitter}
