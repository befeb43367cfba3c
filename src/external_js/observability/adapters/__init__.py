from .logging import JsonlLogSink, LevelFilterLogSink, LogSink, NullLogSink, StderrLogSink
from .telemetry import StreamSampleSink, sample_to_dict
