from .errors import ConfigError
from .loader import CONFIG_ENV_VAR, load_config, load_yaml_config, parse_config
from .logging import build_log_sink
from .models import BridgeConfig, LoggingConfig, MetricNamesConfig, RuntimeCommandConfig
