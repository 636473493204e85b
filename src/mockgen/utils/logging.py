"""Secure logging configuration for mockgen.

Provides logging setup with secret masking. Captured traffic carries
cookies and authorization headers, and the AI client carries an API key,
so these values are masked in all log output.
"""

import logging
import re


class SecretMaskingFilter(logging.Filter):
    """Logging filter that masks credentials in log records.

    Header values for Authorization, Cookie, Set-Cookie and
    x-goog-api-key, as well as ``key=`` query parameters, are
    replaced with [MASKED].
    """

    SECRET_PATTERNS = [
        # Header format: "Authorization: Bearer abc" or "cookie: a=b; c=d"
        re.compile(
            r"((?:authorization|cookie|set-cookie|x-goog-api-key)\s*:\s*)([^\r\n]+)",
            re.IGNORECASE,
        ),
        # Dict format: {'authorization': 'value'} / {"Cookie": "value"}
        re.compile(
            r"(['\"](?:authorization|cookie|set-cookie|x-goog-api-key)['\"]\s*:\s*['\"])([^'\"]*)(['\"])",
            re.IGNORECASE,
        ),
        # Query parameter format: ?key=VALUE or &key=VALUE
        re.compile(r"([?&]key=)([^&\s\"']+)"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter and mask secrets in log records.

        Args:
            record: Log record to process

        Returns:
            Always True (record is always passed through, just modified)
        """
        if record.msg:
            record.msg = self._mask_secrets(str(record.msg))
        if record.args and isinstance(record.args, tuple):
            new_args: list[object] = []
            for arg in record.args:
                if isinstance(arg, str):
                    new_args.append(self._mask_secrets(arg))
                else:
                    new_args.append(arg)
            record.args = tuple(new_args)
        return True

    def _mask_secrets(self, text: str) -> str:
        """Mask all secret values in text.

        Args:
            text: Text potentially containing secrets

        Returns:
            Text with secret values replaced by [MASKED]
        """
        result = text
        for pattern in self.SECRET_PATTERNS:

            def mask_match(m: re.Match[str]) -> str:
                suffix = m.group(3) if len(m.groups()) > 2 else ""
                return m.group(1) + "[MASKED]" + suffix

            result = pattern.sub(mask_match, result)
        return result


def setup_logging(level: int = logging.INFO, name: str | None = None) -> logging.Logger:
    """Set up logging with secret masking.

    Args:
        level: Logging level (default: INFO)
        name: Logger name (default: "mockgen")

    Returns:
        Configured logger instance
    """
    logger_name = name or "mockgen"
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    handler.addFilter(SecretMaskingFilter())

    logger.addHandler(handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger under the mockgen namespace.

    Args:
        name: Logger name suffix (e.g., "capture" for "mockgen.capture")

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"mockgen.{name}")
    return logging.getLogger("mockgen")
