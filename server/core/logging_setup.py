import contextvars
import logging
import re
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import colorama
from colorama import Fore, Style

from .config import settings

user_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "user_id_var", default=None
)
provider_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "provider_var", default=None
)
step_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "step_var", default="APP"
)

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Client libraries that log request URLs (with OAuth codes in the query) at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "msal", "openai")

URL_REGEX = re.compile(r'https?://[^/\s"\']+(/[^"\'\s<?]*)?(\?[^"\'\s<]*)?')

SECRET_PATTERNS = [
    (re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*"), r"\1[REDACTED]"),
    (re.compile(r"\bsk-[A-Za-z0-9\-_]{8,}"), "sk-[REDACTED]"),
    (
        re.compile(r"(['\"]?(?:access_token|refresh_token|client_secret|api_key)['\"]?\s*[:=]\s*['\"]?)[^'\",\s}]+"),
        r"\1[REDACTED]",
    ),
]


def redact_url(message: str) -> str:
    """Reduces every URL in a log message to its path, dropping host and query."""

    def replacer(match):
        return match.group(1) or "/"

    return URL_REGEX.sub(replacer, message)


def redact_secrets(message: str) -> str:
    """Masks bearer tokens, API keys and token fields that end up in log lines."""
    for pattern, replacement in SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def _paint(color: str, text: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


class CustomFormatter(logging.Formatter):
    """
    Colorized single-line format:
    [timestamp][LEVEL][STEP] [user=..] [provider=..] message
    """

    LOG_LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def _context_tags(self) -> str:
        tags = ""
        if user_id := user_id_var.get():
            tags += _paint(Fore.CYAN, f" [user={user_id}]")
        if provider := provider_var.get():
            tags += _paint(Fore.MAGENTA, f" [provider={provider}]")
        return tags

    def format(self, record):
        created = datetime.fromtimestamp(record.created)
        timestamp = f"[{created.strftime('%Y-%m-%dT%H:%M:%S')}.{int(record.msecs):03d}]"
        record.step = step_var.get()
        record.message = record.getMessage()

        line = (
            _paint(Fore.LIGHTBLACK_EX, timestamp)
            + _paint(self.LOG_LEVEL_COLORS.get(record.levelno, ""), f"[{record.levelname}]")
            + _paint(Fore.BLUE, f"[{record.step}]")
            + self._context_tags()
            + f" {record.message}"
        )

        if record.exc_info:
            line += f"\n{Style.RESET_ALL}{self.formatException(record.exc_info)}"

        return redact_secrets(redact_url(line))


def setup_logging():
    """
    Configures the root logger: INFO and below to stdout, errors to stderr.
    """
    colorama.init()

    log_level = LOG_LEVELS.get(settings.LOGGING_LEVEL.upper(), logging.INFO)
    formatter = CustomFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.addFilter(lambda record: record.levelno < logging.ERROR)
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(user_id: int | str | None, provider: str | None) -> None:
    """Tags every following log line of the current request with user and provider."""
    user_id_var.set(str(user_id) if user_id is not None else None)
    provider_var.set(provider)


@contextmanager
def log_step(name: str):
    """Context manager to set the 'step' for all logs within it."""
    token = step_var.set(name)
    try:
        yield
    finally:
        step_var.reset(token)
