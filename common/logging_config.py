import logging
import os
import re
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

MASK = '***MASKED***'

# key=value / key: value pairs whose value is a credential
SENSITIVE_KEYS = ('x-goog-channel-token', 'token', 'authorization', 'secret', 'password')


class SensitiveDataFilter(logging.Filter):
    """
    Mask credentials in gateway log records.

    The message is rendered once with its arguments and the rendered text is
    masked, so values passed as `%s` arguments are covered too.
    """

    KEY_VALUE = re.compile(
        r'((?:%s)["\']?\s*[:=]\s*["\']?)([^"\'}\s,&]+)' % '|'.join(re.escape(key) for key in SENSITIVE_KEYS),
        re.IGNORECASE,
    )
    SCHEME_VALUE = re.compile(r'\b((?:bearer|jwt)\s+)([^\s,}\'"]+)', re.IGNORECASE)

    @classmethod
    def mask(cls, text: str) -> str:
        text = cls.KEY_VALUE.sub(lambda m: m.group(1) + MASK, text)
        return cls.SCHEME_VALUE.sub(lambda m: m.group(1) + MASK, text)

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = self.mask(rendered)
        record.args = ()
        return True


def setup_logging(component_name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Set up logging for a component and return its root logger.

    Child loggers created with `logging.getLogger(__name__)` inside the
    component's package share the handler installed here.

    Args:
        component_name: Name of the component (e.g., 'gateway')
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL env var or INFO

    Returns:
        The component logger
    """
    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    component_logger = logging.getLogger(component_name)
    component_logger.setLevel(level)

    if not component_logger.handlers:
        stream = logging.StreamHandler(sys.stdout)
        stream.setLevel(level)
        stream.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        stream.addFilter(SensitiveDataFilter())
        component_logger.addHandler(stream)
        component_logger.propagate = False

    return component_logger
