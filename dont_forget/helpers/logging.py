from logging import Logger, _nameToLevel, basicConfig

from structlog import (
    configure_once,
    get_logger as structlog_get_logger,
    make_filtering_bound_logger,
)
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    UnicodeDecoder,
    add_log_level,
    format_exc_info,
)
from structlog.stdlib import PositionalArgumentsFormatter

from dont_forget.helpers.config import CONFIG

_logging = CONFIG.monitoring.logging

# Default logging level for all the dependencies (aiosqlite, redis, OTEL exporters)
basicConfig(level=_logging.sys_level.value)

# Configure application logging, one line per event
configure_once(
    cache_logger_on_first_use=True,
    context_class=dict,
    wrapper_class=make_filtering_bound_logger(_nameToLevel[_logging.app_level.value]),
    processors=[
        # Add contextvars support, carries "user.id" and "reminder.id"
        merge_contextvars,
        # Add log level
        add_log_level,
        # Enable %s-style formatting
        PositionalArgumentsFormatter(),
        # Add timestamp
        TimeStamper(fmt="iso", utc=True),
        # Add exceptions info
        StackInfoRenderer(),
        # Decode Unicode to str
        UnicodeDecoder(),
        # Machine readable for log collectors, pretty printing otherwise
        *(
            [format_exc_info, JSONRenderer()]
            if _logging.json_output
            else [ConsoleRenderer()]
        ),
    ],
)

# Framework does not exactly expose Logger, but that's easier to work with
logger: Logger = structlog_get_logger("dont-forget")
