from .domain import LogMessage, Sample
