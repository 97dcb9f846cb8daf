import contextvars
import datetime
import logging
import os
import re

# Set by the token dependency for the lifetime of a request
current_username = contextvars.ContextVar("current_username", default="system")


class PortalLogger:
    """
    Application logger for the BI portal backend.
    Logs format: datetime : user_name : error/warning/info : log details

    Business operations (create/update/delete of portals and sources) are
    written to a separate file through ``operation``.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(PortalLogger, cls).__new__(cls)
            cls._instance._setup_logger()
        return cls._instance

    def _setup_logger(self):
        """Set up the application and business operation loggers"""
        log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
        log_level = logging.getLevelName(log_level_str)
        if not isinstance(log_level, int):
            log_level = logging.INFO

        log_dir = os.getenv(
            'LOG_DIR',
            os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        )
        os.makedirs(log_dir, exist_ok=True)

        self.logger = self._build_logger('biportal', os.path.join(log_dir, 'biportal.log'), log_level)
        self.operation_logger = self._build_logger(
            'biportal.business_operation',
            os.path.join(log_dir, 'business_operation.log'),
            logging.INFO,
        )

        self.filter_patterns = [
            r'Request: \w+ /.*',
            r'Response: \d+',
        ]

    @staticmethod
    def _build_logger(name, log_file, level):
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False

        # Prevent duplicate log entries
        if logger.hasHandlers():
            logger.handlers.clear()

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(file_handler)
        return logger

    def _should_log(self, message):
        for pattern in self.filter_patterns:
            if re.search(pattern, message):
                return False
        return True

    def _format_message(self, level, message):
        timestamp = datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        return f"{timestamp} : {current_username.get()} : {level} : {message}"

    @staticmethod
    def _render(message, args):
        if not args:
            return message
        return message % args if '%' in message else message.format(*args)

    def _log(self, level_name, level, message, args):
        message = self._render(message, args)
        if self._should_log(message):
            self.logger.log(level, self._format_message(level_name, message))

    def debug(self, message, *args):
        self._log('debug', logging.DEBUG, message, args)

    def info(self, message, *args):
        self._log('info', logging.INFO, message, args)

    def warning(self, message, *args):
        self._log('warning', logging.WARNING, message, args)

    def error(self, message, *args):
        """Tracebacks are never included"""
        self._log('error', logging.ERROR, message, args)

    def operation(self, message, *args):
        """Record a business operation"""
        message = self._render(message, args)
        self.operation_logger.info(self._format_message('operation', message))

    def add_filter_pattern(self, pattern):
        self.filter_patterns.append(pattern)

    def remove_filter_pattern(self, pattern):
        if pattern in self.filter_patterns:
            self.filter_patterns.remove(pattern)


logger = PortalLogger()


def debug(message, *args):
    """Log a debug message. Supports format strings: debug("format %s", arg)"""
    logger.debug(message, *args)


def info(message, *args):
    """Log an info message. Supports format strings: info("format %s", arg)"""
    logger.info(message, *args)


def warning(message, *args):
    """Log a warning message. Supports format strings: warning("format %s", arg)"""
    logger.warning(message, *args)


def error(message, *args, exc_info=False):
    """Log an error message. exc_info is accepted for call compatibility and ignored."""
    logger.error(message, *args)


def exception(message):
    logger.error(message)


def operation(message, *args):
    """Log a business operation. Supports format strings: operation("format {}", arg)"""
    logger.operation(message, *args)


def add_filter_pattern(pattern):
    logger.add_filter_pattern(pattern)


def remove_filter_pattern(pattern):
    logger.remove_filter_pattern(pattern)
