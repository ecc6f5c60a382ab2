"""
studio/utils/logging.py
───────────────────────
Configures structured logging for production, plus the audit sink
that store failures are written to.
"""
import os
import json
import logging
from logging.handlers import RotatingFileHandler
from flask import request, has_request_context

AUDIT_LOGGER_NAME = 'studio.audit'

audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)


class RequestFormatter(logging.Formatter):
    """
    Custom formatter that injects request info (IP, URL)
    into logs if context is available.
    """
    def format(self, record):
        if has_request_context():
            record.url = request.url
            record.remote_addr = request.remote_addr
        else:
            record.url = None
            record.remote_addr = None
        return super().format(record)


def setup_logging(app):
    """
    Configure rotating file logging: logs/app.log
    Max size: 5MB
    Backup count: 5 files
    Format: timestamp | level | module | message

    The audit logger additionally writes to AUDIT_LOG_FILE (inside logs/)
    when the config sets one.
    """
    log_dir = os.path.join(app.root_path, '..', 'logs')

    # 1. File Logger (skipped when the filesystem is read-only)
    if not app.testing:
        try:
            os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                os.path.join(log_dir, 'app.log'),
                maxBytes=5 * 1024 * 1024,
                backupCount=5
            )
            file_handler.setFormatter(RequestFormatter(
                '%(asctime)s | %(levelname)s | %(name)s | %(remote_addr)s | %(url)s | %(message)s'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)
        except OSError:
            app.logger.warning("File logging disabled: %s is not writable", log_dir)

    # 2. Stdout Logger
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s'
    ))
    stream_handler.setLevel(logging.INFO)
    app.logger.addHandler(stream_handler)
    app.logger.setLevel(logging.INFO)

    # 3. Audit sink. Module loggers (studio.*) are children of app.logger
    #    and reach its handlers too
    audit_file = app.config.get('AUDIT_LOG_FILE')
    if audit_file and not audit_logger.handlers:
        try:
            os.makedirs(log_dir, exist_ok=True)
            audit_handler = RotatingFileHandler(
                os.path.join(log_dir, audit_file),
                maxBytes=5 * 1024 * 1024,
                backupCount=5
            )
            audit_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
            audit_logger.addHandler(audit_handler)
        except OSError:
            app.logger.warning("Audit file logging disabled: %s is not writable", log_dir)
    audit_logger.setLevel(logging.INFO)

    app.logger.info("Studio back-office startup")


def audit(message, **context):
    """
    Append one line to the audit log: the message plus a JSON dump of
    the context (ids, input summary) needed to diagnose it later.
    """
    if context:
        message = f"{message} | Context: {json.dumps(context, ensure_ascii=False, default=str)}"
    audit_logger.error(message)
