"""Process-wide logging setup.

Every handler carries ``CredentialSafeFilter`` so passwords, password
hashes and bearer tokens never reach the log stream, whichever module
logged them.  Services log ids only; remark and body text stay out.
"""
import logging
import logging.config
import re

REDACTED = "[REDACTED]"

# Group 1 (and 2) keep the key readable; only the value is replaced.
CREDENTIAL_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?i)\b(bearer\s+)[A-Za-z0-9._~+/=-]+"), rf"\1{REDACTED}"),
    (
        re.compile(r"(?i)\b((?:new_)?password(?:_hash)?|token|secret)(\s*[=:]\s*)[^,\s]+"),
        rf"\1\2{REDACTED}",
    ),
    (re.compile(r"scrypt\$\d+\$\d+\$\d+\$[A-Za-z0-9+/=]+\$[A-Za-z0-9+/=]+"), REDACTED),
]

# Chatty third-party loggers held at WARNING regardless of LOG_LEVEL.
QUIET_LOGGERS: dict[str, str] = {
    "uvicorn.access": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "multipart": "WARNING",
}


class CredentialSafeFilter(logging.Filter):
    """Scrub credentials from the message template and its arguments."""

    def _sanitize(self, value: object) -> object:
        if not isinstance(value, str):
            return value
        for pattern, replacement in CREDENTIAL_PATTERNS:
            value = pattern.sub(replacement, value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._sanitize(record.msg)
        if isinstance(record.args, dict):
            record.args = {key: self._sanitize(item) for key, item in record.args.items()}
        elif record.args:
            record.args = tuple(self._sanitize(item) for item in record.args)
        return True


def build_logging_config(level: str) -> dict:
    loggers: dict[str, dict] = {"": {"handlers": ["console"], "level": level.upper()}}
    for name, quiet_level in QUIET_LOGGERS.items():
        loggers[name] = {"handlers": ["console"], "level": quiet_level, "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"credentials": {"()": CredentialSafeFilter}},
        "formatters": {"plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "plain",
                "filters": ["credentials"],
            }
        },
        "loggers": loggers,
    }


def setup_logging() -> None:
    from noticeboard.core.settings import get_settings

    logging.config.dictConfig(build_logging_config(get_settings().log_level))
