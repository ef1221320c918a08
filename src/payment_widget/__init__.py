from .allocation import Allocation, allocate
from .catalog import TenderMethod
from .channel import ChannelState, MessageChannel
from .config import ConfigError, WidgetConfig, load_config
from .exceptions import AmountFormatError, ChannelStateError, SubmissionError, UnknownMethodError, WidgetError
from .launch import init_from_location
from .models import InitPayload, MessageEnvelope, ResultPayload
from .result import compose_result
from .session import CardDetails, ChequeDetails, SessionState, SplitRow, parse_amount
from .transport import LoopbackTransport, Transport
from .validation import FieldErrors, has_blocking_error, validate, visible_errors
from .widget import AsyncioScheduler, PaymentWidget, Scheduler

__version__ = "1.1.0"

__all__ = [
    "Allocation",
    "AmountFormatError",
    "AsyncioScheduler",
    "CardDetails",
    "ChannelState",
    "ChannelStateError",
    "ChequeDetails",
    "ConfigError",
    "FieldErrors",
    "InitPayload",
    "LoopbackTransport",
    "MessageChannel",
    "MessageEnvelope",
    "PaymentWidget",
    "ResultPayload",
    "Scheduler",
    "SessionState",
    "SplitRow",
    "SubmissionError",
    "TenderMethod",
    "Transport",
    "UnknownMethodError",
    "WidgetConfig",
    "WidgetError",
    "allocate",
    "compose_result",
    "has_blocking_error",
    "init_from_location",
    "load_config",
    "parse_amount",
    "validate",
    "visible_errors",
]
