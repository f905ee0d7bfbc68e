import logging
import os


LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'
# Library loggers that drown out render diagnostics at INFO.
NOISY_LOGGERS = ('boto3', 'botocore', 'urllib3', 'asyncio', 'fontTools', 'fpdf', 'playwright', 'werkzeug')


def _level(name: str, default: int) -> int:
    value = os.environ.get(name, "").strip().upper()
    level = logging.getLevelName(value) if value else default
    return level if isinstance(level, int) else default


def configure_logging() -> None:
    """Configure the root logger for Lambda and the local Flask server.

    ``LOG_LEVEL`` sets the service level; ``LIBRARY_LOG_LEVEL`` (default
    WARNING) applies to third-party loggers such as botocore and fpdf.
    """
    root = logging.getLogger()
    root.setLevel(_level("LOG_LEVEL", logging.INFO))

    if not root.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream)

    library_level = _level("LIBRARY_LOG_LEVEL", logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
