import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from pythonjsonlogger import jsonlogger


CONTEXT_FIELDS = ("repo", "builder", "registry")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_record[name] = getattr(record, name)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def get_logging_config(
    log_level: str = "INFO",
    json_format: bool = False,
) -> Dict[str, Any]:
    # stderr keeps the build output on stdout readable
    handlers_config: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "stream": "ext://sys.stderr",
            "formatter": "json" if json_format else "standard",
        }
    }

    handler_names = list(handlers_config.keys())

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": CustomJsonFormatter,
                "format": "%(timestamp)s %(level)s %(name)s %(message)s",
            },
        },
        "handlers": handlers_config,
        "loggers": {
            "": {
                "handlers": handler_names,
                "level": log_level,
                "propagate": True,
            },
            "buildx_plugin": {
                "handlers": handler_names,
                "level": log_level,
                "propagate": False,
            },
            "asyncio": {
                "handlers": handler_names,
                "level": "WARNING",
                "propagate": False,
            },
        },
    }


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
) -> None:
    config = get_logging_config(log_level=log_level, json_format=json_format)
    logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    def __init__(
        self,
        logger: logging.Logger,
        extra: Optional[Dict[str, Any]] = None
    ):
        super().__init__(logger, extra or {})

    def process(
        self,
        msg: str,
        kwargs: Dict[str, Any]
    ) -> tuple:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def get_build_logger(
    repo: str,
    builder: Optional[str] = None,
    registry: Optional[str] = None,
) -> LoggerAdapter:
    logger = get_logger("buildx_plugin.build")
    extra: Dict[str, Any] = {"repo": repo}
    if builder:
        extra["builder"] = builder
    if registry:
        extra["registry"] = registry
    return LoggerAdapter(logger, extra)
