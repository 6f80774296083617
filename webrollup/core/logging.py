"""
Logging System for webrollup

Provides console logging with an optional rotating log file, and the
end-of-run summary report.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict, Any


LOGGER_NAME = 'webrollup'
_SIZE_UNITS = (('GB', 1024 ** 3), ('MB', 1024 ** 2), ('KB', 1024))


class LoggingManager:
    """
    Centralized logging manager with optional file rotation
    """

    def __init__(self):
        self.logger: Optional[logging.Logger] = None
        self.file_handler: Optional[logging.handlers.RotatingFileHandler] = None
        self.console_handler: Optional[logging.StreamHandler] = None
        self._setup_complete = False

    def setup_logging(self, level: str = "INFO", log_file: Optional[str] = None,
                      max_size: str = "10MB", backup_count: int = 3) -> None:
        """
        Set up logging with console output and, if requested, a rotating file

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Path to log file, or None for console only
            max_size: Maximum size before rotation (e.g., "10MB")
            backup_count: Number of backup files to keep
        """
        level_value = getattr(logging, level.upper(), None)
        if not isinstance(level_value, int):
            raise ValueError(f"Unknown log level: {level}")

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(level_value)
        self.logger.propagate = False

        # Clear handlers from a previous setup
        self.close()
        self.logger.handlers.clear()

        console_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setLevel(level_value)
        self.console_handler.setFormatter(console_formatter)
        self.logger.addHandler(self.console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            detailed_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            self.file_handler = logging.handlers.RotatingFileHandler(
                log_path, maxBytes=self._parse_size(max_size),
                backupCount=backup_count, encoding='utf-8'
            )
            self.file_handler.setLevel(logging.DEBUG)
            self.file_handler.setFormatter(detailed_formatter)
            self.logger.addHandler(self.file_handler)

        self._setup_complete = True
        self.logger.debug("Logging system initialized")

    def _parse_size(self, size: str) -> int:
        """Parse a size such as '10MB' or '512KB' into bytes; a bare number is bytes"""
        size = size.upper().strip()
        for unit, factor in _SIZE_UNITS:
            if size.endswith(unit):
                return int(size[:-len(unit)]) * factor
        return int(size)

    def get_logger(self, name: Optional[str] = None) -> logging.Logger:
        """
        Get the package logger, or a named child of it.

        Before setup_logging() runs this is the bare 'webrollup' logger, so
        components can be built and tested without configuring handlers.
        """
        base = self.logger if self._setup_complete and self.logger else logging.getLogger(LOGGER_NAME)
        return base.getChild(name) if name else base

    def generate_summary_report(self, stats: Dict[str, Any]) -> str:
        """Generate and log a summary report for one run"""
        report_lines = [
            "=" * 60,
            "ROLLUP SUMMARY",
            "=" * 60,
            f"Sites: {stats.get('sites', 0)}",
            f"Output mode: {stats.get('mode', 'Unknown')}",
            f"Duration: {stats.get('duration', 0.0):.2f}s",
            "",
            "URLS:",
            f"  Scheduled: {stats.get('scheduled', 0)}",
            f"  Extracted: {stats.get('succeeded', 0)}",
            f"  Failed: {stats.get('failed', 0)}",
            f"  Cancelled: {stats.get('cancelled', 0)}",
            "",
            "OUTPUT:",
        ]

        files = stats.get('files', [])
        for path in files:
            report_lines.append(f"  {path}")
        if not files:
            report_lines.append("  (nothing written)")

        errors = stats.get('errors', [])
        if errors:
            report_lines.extend(["", "ERRORS ENCOUNTERED:"])
            for error in errors[:10]:
                report_lines.append(f"  - {error}")
            if len(errors) > 10:
                report_lines.append(f"  ... and {len(errors) - 10} more errors")

        report_lines.append("=" * 60)

        report = "\n".join(report_lines)
        self.get_logger().info(f"Run summary:\n{report}")
        return report

    def close(self) -> None:
        """Close logging handlers"""
        if self.file_handler:
            self.file_handler.close()
            self.file_handler = None
        if self.console_handler:
            self.console_handler.close()
            self.console_handler = None


# Global logging manager instance
logging_manager = LoggingManager()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get the package logger, or a named child of it"""
    return logging_manager.get_logger(name)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None,
                  max_size: str = "10MB", backup_count: int = 3) -> None:
    """Set up global logging system"""
    logging_manager.setup_logging(level, log_file, max_size, backup_count)
