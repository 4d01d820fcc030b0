"""
WSGI Application Entry Point

Usage with any WSGI server, e.g.:
    gunicorn wsgi:application
"""
import logging
import os
import sys
from pathlib import Path

app_root = Path(__file__).resolve().parent

# Make the src/ package importable without installation
sys.path.insert(0, str(app_root / "src"))

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

stream_handler = logging.StreamHandler()
stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
root_logger.addHandler(stream_handler)

log_file_path = os.environ.get('LOG_FILE')
if log_file_path:
    try:
        file_handler = logging.FileHandler(log_file_path, mode='a')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to setup file logging at {log_file_path}: {e}")

logger = logging.getLogger(__name__)
logger.info(f"Logging initialized at level {LOG_LEVEL}")

from subdomain_manager.app import create_app  # noqa: E402

application = create_app()

if __name__ == "__main__":
    application.run()
