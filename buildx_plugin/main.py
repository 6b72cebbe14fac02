import asyncio
import sys

from pydantic import ValidationError

from buildx_plugin.builder.build_executor import BuildPipeline, PipelineResult
from buildx_plugin.common.config.settings import get_settings
from buildx_plugin.common.config.logging_config import setup_logging, get_logger
from buildx_plugin.common.dto.build import PipelineConfig
from buildx_plugin.common.exceptions.base_exceptions import PluginBaseException
from buildx_plugin.common.exceptions.build_exceptions import ConfigurationError


logger = get_logger(__name__)


def load_config() -> PipelineConfig:
    try:
        settings = get_settings()
        setup_logging(log_level=settings.log_level, json_format=settings.log_json)
        return settings.to_pipeline_config()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid plugin configuration: {e}", cause=e)


async def run_plugin() -> PipelineResult:
    config = load_config()
    logger.info(f"Starting buildx plugin for {config.build.repo or 'unnamed repo'}")

    pipeline = BuildPipeline(config)
    return await pipeline.execute()


def main() -> None:
    try:
        result = asyncio.run(run_plugin())
    except PluginBaseException as e:
        logger.error(f"{e}", extra={"error": e.to_dict()})
        sys.exit(1)

    if result.ignored_failures:
        logger.info(f"Ignored failures: {', '.join(result.ignored_failures)}")


if __name__ == "__main__":
    main()
