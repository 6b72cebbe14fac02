import io
import json
import logging

from buildx_plugin.common.config.logging_config import (
    CustomJsonFormatter,
    get_build_logger,
    get_logging_config,
)


def test_logging_config_writes_to_stderr_only():
    config = get_logging_config(log_level="DEBUG", json_format=True)

    assert list(config["handlers"]) == ["console"]
    assert config["handlers"]["console"]["stream"] == "ext://sys.stderr"
    assert config["handlers"]["console"]["formatter"] == "json"
    assert config["loggers"]["buildx_plugin"]["level"] == "DEBUG"


def test_text_format_by_default():
    config = get_logging_config()

    assert config["handlers"]["console"]["formatter"] == "standard"


def test_build_logger_context_in_json_output():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(CustomJsonFormatter("%(message)s"))
    build_logger = get_build_logger(repo="octocat/hello-world", registry="ghcr.io")
    build_logger.logger.addHandler(handler)

    try:
        build_logger.warning("Pipeline finished")
    finally:
        build_logger.logger.removeHandler(handler)

    record = json.loads(stream.getvalue())
    assert record["message"] == "Pipeline finished"
    assert record["repo"] == "octocat/hello-world"
    assert record["registry"] == "ghcr.io"
    assert record["level"] == "WARNING"
    assert "builder" not in record
