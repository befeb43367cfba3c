from .logging import LOG_LEVELS, LogMessage
from .telemetry import Sample
