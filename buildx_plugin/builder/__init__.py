from buildx_plugin.builder.build_executor import BuildPipeline, PipelinePhase, PipelineResult
from buildx_plugin.builder.builder_manager import BuilderManager
from buildx_plugin.builder.cache_metrics import CacheMetricsExtractor, parse_cache_metrics, write_cache_metrics
from buildx_plugin.builder.command_runner import CommandRunner, CommandResult
from buildx_plugin.builder.daemon import DaemonManager
from buildx_plugin.builder.output_tee import LineTee

__all__ = [
    "BuildPipeline",
    "PipelinePhase",
    "PipelineResult",
    "BuilderManager",
    "CacheMetricsExtractor",
    "parse_cache_metrics",
    "write_cache_metrics",
    "CommandRunner",
    "CommandResult",
    "DaemonManager",
    "LineTee",
]
