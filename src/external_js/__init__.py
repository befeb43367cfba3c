from .bridge.dispatcher import Bridge, default_bridge, run
from .bridge.errors import BridgeError, CallerError, ExecutionError, InvocationTimeoutError, ProtocolError
from .host.execution import ExecutionUnit

__version__ = "0.1.0"
