from typing import AsyncIterator, Dict, Iterable, Optional, Union
from pathlib import Path
import json
import re

from buildx_plugin.common.config.constants import LayerState
from buildx_plugin.common.config.logging_config import get_logger
from buildx_plugin.common.dto.metrics import CacheMetrics, Layer, LayerStatus
from buildx_plugin.common.utils.file_utils import write_file


logger = get_logger(__name__)


LAYER_STATUS_PATTERN = re.compile(
    r"#(\d+) (DONE|CACHED|ERRORED|CANCELED)(?: (\d+(?:\.\d+)?)s)?"
)


class CacheMetricsExtractor:
    """Aggregates ``#<index> <STATUS>[ <seconds>s]`` progress markers.

    Counts are per raw occurrence. Each index keeps only the status of its
    last occurrence in the stream.
    """

    def __init__(self):
        self._counts: Dict[LayerState, int] = {state: 0 for state in LayerState}
        self._layers: Dict[int, LayerStatus] = {}
        self._result: Optional[CacheMetrics] = None

    @property
    def finalized(self) -> bool:
        return self._result is not None

    def feed(self, line: str) -> int:
        if self._result is not None:
            raise RuntimeError("Cache metrics already finalized")

        matched = 0
        for match in LAYER_STATUS_PATTERN.finditer(line):
            index = int(match.group(1))
            state = LayerState(match.group(2))

            elapsed: Optional[float] = None
            if state == LayerState.DONE and match.group(3):
                elapsed = float(match.group(3))

            self._counts[state] += 1
            self._layers[index] = LayerStatus(status=state, time=elapsed)
            matched += 1

        return matched

    def finalize(self) -> CacheMetrics:
        if self._result is None:
            self._result = CacheMetrics(
                done=self._counts[LayerState.DONE],
                cached=self._counts[LayerState.CACHED],
                errored=self._counts[LayerState.ERRORED],
                canceled=self._counts[LayerState.CANCELED],
                layers=[
                    Layer(index=index, layer_status=status)
                    for index, status in sorted(self._layers.items())
                ],
            )
        return self._result

    async def consume(self, lines: AsyncIterator[str]) -> CacheMetrics:
        async for line in lines:
            self.feed(line)
        return self.finalize()


def parse_cache_metrics(lines: Iterable[str]) -> CacheMetrics:
    extractor = CacheMetricsExtractor()
    for line in lines:
        extractor.feed(line)
    return extractor.finalize()


def write_cache_metrics(metrics: CacheMetrics, path: Union[str, Path]) -> Path:
    content = json.dumps(metrics.to_report(), indent="\t")
    written = write_file(path, content, mode=0o644)
    logger.info(
        f"Cache metrics written to {written}: {metrics.cached}/{metrics.total_layers} layers cached"
    )
    return written
