"""
Audit logging for subdomain-manager
Logs to the activity_log table and, optionally, to an append-only file
"""
import logging
import os
from typing import Any, Dict, Optional

from .database import create_activity_log
from .models import STATUS_SUCCESS

logger = logging.getLogger(__name__)


class AuditLogger:
    """Combined file and database audit logger"""

    def __init__(self, log_file_path: Optional[str] = None, enable_db: bool = True):
        """
        Initialize audit logger

        Args:
            log_file_path: Path to log file (None to disable file logging)
            enable_db: Whether to write activity_log rows (default True)
        """
        self.log_file_path = log_file_path
        self.enable_db = enable_db
        self.file_logger = None

        if log_file_path:
            self._setup_file_logger()

    def _setup_file_logger(self):
        """Setup file-based logging"""
        try:
            log_dir = os.path.dirname(self.log_file_path)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir, exist_ok=True)

            self.file_logger = logging.getLogger('subdomain_manager.audit_file')
            self.file_logger.setLevel(logging.INFO)
            self.file_logger.propagate = False
            self.file_logger.handlers = []

            # No rotation - indefinite retention
            file_handler = logging.FileHandler(self.log_file_path)
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.file_logger.addHandler(file_handler)

            logger.info(f"File audit logging enabled: {self.log_file_path}")

        except OSError as e:
            logger.error(f"Failed to setup file audit logging: {e}")
            self.file_logger = None

    def log_activity(self, action_type: str, resource_type: str, resource_id: Any,
                     status: str, error_message: Optional[str] = None,
                     details: Optional[Dict[str, Any]] = None):
        """
        Record one workflow attempt

        Args:
            action_type: CREATE, UPDATE or DELETE
            resource_type: SUBDOMAIN, DNS_RECORD or PROXY_HOST
            resource_id: Subdomain id or full hostname
            status: SUCCESS, PARTIAL or FAILED
            error_message: Optional error message
            details: Optional structured payload (stored as JSON)

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If the database write fails
        """
        if self.file_logger:
            log_msg = (f"action={action_type} resource={resource_type} "
                       f"id={resource_id} status={status}")
            if error_message:
                log_msg += f" error='{error_message}'"
            if status == STATUS_SUCCESS:
                self.file_logger.info(log_msg)
            else:
                self.file_logger.warning(log_msg)

        if self.enable_db:
            create_activity_log(
                action_type=action_type,
                resource_type=resource_type,
                resource_id=str(resource_id),
                status=status,
                error_message=error_message,
                details=details,
            )


def get_audit_logger(log_file_path: Optional[str] = None,
                     enable_db: bool = True) -> AuditLogger:
    """
    Create and return an AuditLogger instance

    Args:
        log_file_path: Path to log file (None or empty to disable file logging)
        enable_db: Whether to enable database logging

    Returns:
        AuditLogger instance
    """
    return AuditLogger(log_file_path=log_file_path or None, enable_db=enable_db)

