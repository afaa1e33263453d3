#!/usr/bin/env python3
"""
LiveCheck Configuration & Logging Module
========================================
Centralized configuration, structured logging, and error types.

Version: module v1.0
"""

import os
import sys
import json
import logging
import uuid
import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager
import threading

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_SERVICE_URL = "https://api.languagetool.org"
DEFAULT_LANGUAGE = "en-US"
DEFAULT_CHECK_INTERVAL = 3.0        # Seconds between check cycles
DEFAULT_REQUEST_TIMEOUT = 30.0      # Seconds to wait for the checking service
DEFAULT_BLOCK_SIZE = 1000           # Characters per incremental block
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max per log file
LOG_BACKUP_COUNT = 5                # Number of log backup files to keep

__version__ = "1.0.0"
VERSION = __version__
APP_NAME = "LiveCheck"


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class CheckerConfig:
    """Checker configuration with local defaults."""

    # Checking service
    service_url: str = DEFAULT_SERVICE_URL
    username: str = ""
    api_key: str = ""
    language: str = DEFAULT_LANGUAGE

    # Cycle timing
    check_interval: float = DEFAULT_CHECK_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    block_size: int = DEFAULT_BLOCK_SIZE

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # Options: json, text
    log_to_file: bool = False
    log_to_console: bool = True
    log_dir: Path = field(default_factory=lambda: Path(__file__).parent / 'logs')

    def __post_init__(self):
        """Normalize values and prepare the log directory."""
        self.service_url = (self.service_url or DEFAULT_SERVICE_URL).rstrip('/')
        self.log_dir = Path(self.log_dir)
        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.api_key)

    @classmethod
    def from_env(cls) -> 'CheckerConfig':
        """Load configuration from environment variables."""
        return cls(
            service_url=os.environ.get('LIVECHECK_SERVICE_URL', DEFAULT_SERVICE_URL),
            username=os.environ.get('LIVECHECK_USERNAME', ''),
            api_key=os.environ.get('LIVECHECK_API_KEY', ''),
            language=os.environ.get('LIVECHECK_LANGUAGE', DEFAULT_LANGUAGE),
            check_interval=float(os.environ.get('LIVECHECK_INTERVAL', str(DEFAULT_CHECK_INTERVAL))),
            request_timeout=float(os.environ.get('LIVECHECK_TIMEOUT', str(DEFAULT_REQUEST_TIMEOUT))),
            block_size=int(os.environ.get('LIVECHECK_BLOCK_SIZE', str(DEFAULT_BLOCK_SIZE))),
            log_level=os.environ.get('LIVECHECK_LOG_LEVEL', 'INFO'),
            log_format=os.environ.get('LIVECHECK_LOG_FORMAT', 'text'),
            log_to_file=_env_bool('LIVECHECK_LOG_TO_FILE'),
            log_dir=Path(os.environ.get('LIVECHECK_LOG_DIR', str(Path(__file__).parent / 'logs'))),
        )

    def validate(self) -> tuple:
        """Validate configuration and return (is_valid, errors)."""
        errors = []

        if not self.service_url.startswith(('http://', 'https://')):
            errors.append(f"Service URL must use http or https: {self.service_url}")

        if self.check_interval <= 0:
            errors.append("Check interval must be positive")

        if self.request_timeout <= 0:
            errors.append("Request timeout must be positive")

        if self.block_size <= 0:
            errors.append("Block size must be positive")

        if self.api_key and not self.username:
            errors.append("LIVECHECK_USERNAME must be set when an API key is configured")

        if self.log_format not in ('json', 'text'):
            errors.append(f"Invalid log_format: {self.log_format}. Must be 'json' or 'text'")

        if not hasattr(logging, self.log_level.upper()):
            errors.append(f"Invalid log_level: {self.log_level}")

        return (len(errors) == 0, errors)


# Global config instance
_config: Optional[CheckerConfig] = None

def get_config() -> CheckerConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = CheckerConfig.from_env()
    return _config


def reset_config():
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured logger with correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[CheckerConfig] = None):
        self.name = name
        self.config = config or get_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))
        self.logger.handlers.clear()

        if self.config.log_format == 'json':
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
            )

        if self.config.log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if self.config.log_to_file:
            from logging.handlers import RotatingFileHandler
            log_file = self.config.log_dir / f"{self.name.lower()}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current thread."""
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        """Get correlation ID for current thread."""
        return getattr(cls._local, 'correlation_id', None) or str(uuid.uuid4())[:8]

    @classmethod
    def new_correlation_id(cls) -> str:
        """Generate and set a new correlation ID."""
        correlation_id = str(uuid.uuid4())[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs):
        extra = {'correlation_id': self.get_correlation_id(), **kwargs}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
            duration_ms = (time.time() - start_time) * 1000
            self.debug(f"{operation} completed", operation=operation, status='completed',
                       duration_ms=round(duration_ms, 2), **context)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.error(f"{operation} failed: {e}", operation=operation, status='failed',
                       duration_ms=round(duration_ms, 2), exc_info=True, **context)
            raise


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    _RESERVED = frozenset((
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'pathname', 'process', 'processName', 'relativeCreated',
        'stack_info', 'thread', 'threadName', 'exc_info', 'exc_text',
        'message', 'taskName',
    ))

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in self._RESERVED:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, get_config())


# =============================================================================
# ERROR HANDLING
# =============================================================================

class LiveCheckError(Exception):
    """Base exception for LiveCheck."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 status_code: int = 500, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response dict."""
        return {
            'success': False,
            'error': {
                'code': self.code,
                'message': self.message,
                'details': self.details
            }
        }


class ValidationError(LiveCheckError):
    """Input validation error."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400,
                         details={'field': field, **kwargs})


class ResponseParseError(LiveCheckError):
    """Checking service returned data that does not match the expected schema."""
    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, code="RESPONSE_PARSE_ERROR", status_code=502,
                         details={'path': path, **kwargs})


class CheckServiceError(LiveCheckError):
    """Network, timeout, or HTTP failure talking to the checking service."""
    def __init__(self, message: str, service_url: Optional[str] = None,
                 http_status: Optional[int] = None, **kwargs):
        super().__init__(message, code="CHECK_SERVICE_ERROR", status_code=503,
                         details={'service_url': service_url, 'http_status': http_status, **kwargs})


class SessionError(LiveCheckError):
    """Command addressed to a document without a usable check session."""
    def __init__(self, message: str, document_id: Optional[str] = None,
                 status_code: int = 404, **kwargs):
        super().__init__(message, code="SESSION_ERROR", status_code=status_code,
                         details={'document_id': document_id, **kwargs})
