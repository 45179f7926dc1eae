"""
Logging configuration for the Oscars Pool application
Console output plus rotating log files for the app, errors and background jobs
"""

import logging
import logging.handlers
import os

from flask import has_request_context, request
from flask_login import current_user

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers whose records also go to scheduler.log
BACKGROUND_LOGGERS = ("app.services.scheduler_service", "app.services.odds_service")


class RequestContextFilter(logging.Filter):
    """Attach method, path, remote address and user id to log records"""

    def filter(self, record):
        if has_request_context():
            record.method = request.method
            record.path = request.path
            record.remote_addr = request.remote_addr
            record.user_id = (
                current_user.get_id() if current_user and current_user.is_authenticated else "-"
            )
        else:
            record.method = "-"
            record.path = "-"
            record.remote_addr = "-"
            record.user_id = "-"
        return True


class ColoredFormatter(logging.Formatter):
    """Level names in color for the development console"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if not color:
            return super().format(record)

        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _rotating_handler(path, level, formatter, max_mb, backups):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * 1024 * 1024, backupCount=backups
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    return handler


def setup_logging(app):
    """
    Configure the root logger for the Flask application

    Args:
        app: Flask application instance
    """
    log_level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates when the app is built twice
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if app.config.get("LOG_TO_CONSOLE", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        if app.debug:
            console_handler.setFormatter(
                ColoredFormatter(
                    LOG_FORMAT + " [%(filename)s:%(lineno)d]", datefmt="%H:%M:%S"
                )
            )
        else:
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        console_handler.addFilter(RequestContextFilter())
        root_logger.addHandler(console_handler)

    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)

        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "oscars_pool.log"),
                log_level,
                logging.Formatter(
                    LOG_FORMAT + " [%(method)s %(path)s] [%(remote_addr)s] [user=%(user_id)s]",
                    datefmt=DATE_FORMAT,
                ),
                max_mb=10,
                backups=5,
            )
        )
        root_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "errors.log"),
                logging.ERROR,
                logging.Formatter(
                    LOG_FORMAT + " [%(pathname)s:%(lineno)d] [%(method)s %(path)s]",
                    datefmt=DATE_FORMAT,
                ),
                max_mb=5,
                backups=3,
            )
        )

        scheduler_handler = _rotating_handler(
            os.path.join(log_dir, "scheduler.log"),
            logging.INFO,
            logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT),
            max_mb=5,
            backups=3,
        )
        for name in BACKGROUND_LOGGERS:
            logging.getLogger(name).addHandler(scheduler_handler)

    # Quiet third-party loggers
    for name in ("werkzeug", "urllib3", "requests", "flask_limiter"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    app.logger.info(f"Logging configured - Level: {logging.getLevelName(log_level)}")
