"""Terminal output helpers -- ANSI colors for the CLI, timestamped log-file lines.

The decoding modules only use the standard ``logging`` module; everything
here is presentation for ``nefparser.cli``.
"""

import logging
import sys
from datetime import datetime

# ---------------------------------------------------------------------------
# ANSI color codes
# ---------------------------------------------------------------------------

_RESET = '\033[0m'
_DIM = '\033[2m'

_GREEN = '\033[32m'
_YELLOW = '\033[33m'
_CYAN = '\033[36m'

_BOLD_RED = '\033[1;31m'
_BOLD_CYAN = '\033[1;36m'
_BOLD_WHITE = '\033[1;37m'


def _is_tty():
    """Check if stdout is a terminal (not piped)."""
    try:
        return sys.stdout.isatty()
    except AttributeError:
        return False


# Module-level flag -- set once at import time
_USE_COLOR = _is_tty()


def set_color_enabled(enabled: bool):
    """Override automatic color detection."""
    global _USE_COLOR
    _USE_COLOR = enabled


def _c(code: str, text: str) -> str:
    """Wrap text in an ANSI code when color is enabled."""
    if _USE_COLOR:
        return f'{code}{text}{_RESET}'
    return text


# ---------------------------------------------------------------------------
# CLI formatting helpers
# ---------------------------------------------------------------------------

def cli_header(text: str) -> str:
    """Bold cyan header line."""
    return _c(_BOLD_CYAN, text)


def cli_success(text: str) -> str:
    """Green text for fully decoded files."""
    return _c(_GREEN, text)


def cli_warning(text: str) -> str:
    """Yellow text for partial records and skipped sections."""
    return _c(_YELLOW, text)


def cli_error(text: str) -> str:
    """Red text for files that could not be decoded."""
    return _c(_BOLD_RED, text)


def cli_info(text: str) -> str:
    return _c(_CYAN, text)


def cli_dim(text: str) -> str:
    return _c(_DIM, text)


def cli_bold(text: str) -> str:
    return _c(_BOLD_WHITE, text)


def cli_separator() -> str:
    """A visual separator line."""
    return _c(_DIM, '-' * 60)


# ---------------------------------------------------------------------------
# Log file formatting (always plain text with timestamps and levels)
# ---------------------------------------------------------------------------

def _timestamp() -> str:
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def log_info(msg: str) -> str:
    """Format a log file INFO line."""
    return f'[{_timestamp()}] [INFO]  {msg}'


def log_warn(msg: str) -> str:
    """Format a log file WARN line."""
    return f'[{_timestamp()}] [WARN]  {msg}'


def log_error(msg: str) -> str:
    """Format a log file ERROR line."""
    return f'[{_timestamp()}] [ERROR] {msg}'


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def configure_logging(debug: bool = False):
    """Send the decoder's debug trace to stderr when ``debug`` is set.

    Otherwise nothing is configured and degraded-section warnings reach
    stderr through logging's last-resort handler.
    """
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(levelname)s %(name)s: %(message)s',
        )
