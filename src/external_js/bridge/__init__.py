from .errors import BridgeError, CallerError, ExecutionError, InvocationTimeoutError, ProtocolError
from .options import RunRequest, interpret_arguments
from .runtimes import RUNTIMES, Runtime, select_runtime
from .wire import CHECKS_KEY, METRICS_KEY, RESULT_END, RESULT_START
