import json
import logging
import sys
import traceback
from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s'


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, Decimal):
            return str(o)
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


class JSONFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(UTC).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_data'):
            log_entry['data'] = record.extra_data

        return json.dumps(log_entry, ensure_ascii=False, cls=CustomJSONEncoder)


def setup_logging(level: str = "INFO",
                  log_directory: str | None = None,
                  max_file_size: int = 10 * 1024 * 1024,
                  backup_count: int = 5) -> None:
    """
    Configure the root logger: console output always, rotating JSON files
    (``system/app.log`` and ``errors/errors.log``) when a directory is given.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    logging.getLogger("httpx").setLevel(logging.WARNING)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    root_logger.addHandler(console_handler)

    if log_directory is None:
        return

    log_path = Path(log_directory)
    for subdirectory, filename, file_level in (
        ("system", "app.log", logging.DEBUG),
        ("errors", "errors.log", logging.WARNING),
    ):
        target_dir = log_path / subdirectory
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target_dir / filename,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EventType(Enum):
    RATE_RESOLUTION = "rate_resolution"
    RATE_INSERTION = "rate_insertion"
    API_CALL = "api_call"
    CACHE_OPERATION = "cache_operation"
    SERVICE_LIFECYCLE = "service_lifecycle"


@dataclass
class LogEvent:
    event_type: EventType
    level: LogLevel
    message: str
    timestamp: datetime
    duration_ms: float | None = None
    rate_context: dict[str, Any] | None = None
    api_context: dict[str, Any] | None = None
    performance_context: dict[str, Any] | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        data['event_type'] = self.event_type.value
        data['level'] = self.level.value
        return data


class ProductionLogger:
    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger('historical_rates.events')

    def log_event(self, event: LogEvent):
        extra = {"extra_data": event.to_dict()}
        self.logger.log(getattr(logging, event.level.value), event.message, extra=extra)

    def log_rate_resolution(self, currency: str, iso_date: str, tier: str,
                            duration_ms: float, rate: Decimal | None = None,
                            error_message: str | None = None):
        found = error_message is None
        event = LogEvent(
            event_type=EventType.RATE_RESOLUTION,
            level=LogLevel.DEBUG if found else LogLevel.WARNING,
            message=f"Base rate {currency} on {iso_date}: {tier.upper() if found else 'FAILED'}",
            timestamp=datetime.now(UTC),
            duration_ms=duration_ms,
            rate_context={
                "currency": currency,
                "date": iso_date,
                "tier": tier,
                "rate": rate,
            },
            error_context={"error_message": error_message} if error_message else None
        )
        self.log_event(event)

    def log_rate_insertion(self, currencies: list[str], date_count: int):
        event = LogEvent(
            event_type=EventType.RATE_INSERTION,
            level=LogLevel.INFO,
            message=f"Added {date_count} rates for {', '.join(currencies)}",
            timestamp=datetime.now(UTC),
            rate_context={"currencies": currencies, "date_count": date_count},
        )
        self.log_event(event)

    def log_api_call(self, provider_name: str, endpoint: str, success: bool, response_time_ms: float,
                     error_message: str | None = None, currency_count: int | None = None):
        event = LogEvent(
            event_type=EventType.API_CALL,
            level=LogLevel.INFO if success else LogLevel.ERROR,
            message=f"API call to {provider_name}/{endpoint}: {'SUCCESS' if success else 'FAILED'}",
            timestamp=datetime.now(UTC),
            duration_ms=response_time_ms,
            api_context={
                "provider": provider_name,
                "endpoint": endpoint,
                "success": success,
                "response_time_ms": response_time_ms,
                "currency_count": currency_count
            },
            error_context={"error_message": error_message} if error_message else None
        )
        self.log_event(event)

    def log_cache_operation(self, operation: str, cache_key: str, hit: bool,
                            duration_ms: float, entry_count: int | None = None,
                            level: LogLevel = LogLevel.DEBUG, error_message: str | None = None):
        message = f"Cache {operation} for {cache_key}: {'HIT' if hit else 'MISS'}"
        if error_message:
            message += f" - ERROR: {error_message}"

        event = LogEvent(
            event_type=EventType.CACHE_OPERATION,
            level=level,
            message=message,
            timestamp=datetime.now(UTC),
            duration_ms=duration_ms,
            performance_context={
                "operation": operation,
                "cache_key": cache_key,
                "hit": hit,
                "duration_ms": duration_ms,
                "entry_count": entry_count
            },
            error_context={"error_message": error_message} if error_message else None
        )
        self.log_event(event)

    def log_lifecycle(self, message: str, **context):
        event = LogEvent(
            event_type=EventType.SERVICE_LIFECYCLE,
            level=LogLevel.INFO,
            message=message,
            timestamp=datetime.now(UTC),
            rate_context=context or None,
        )
        self.log_event(event)
