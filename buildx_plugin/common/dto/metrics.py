from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, computed_field

from buildx_plugin.common.config.constants import LayerState


class LayerStatus(BaseModel):
    status: LayerState
    time: Optional[float] = Field(
        default=None,
        description="Elapsed seconds, only reported for DONE layers",
    )


class Layer(BaseModel):
    index: int = Field(ge=0)
    layer_status: LayerStatus


class CacheMetrics(BaseModel):
    done: int = Field(default=0)
    cached: int = Field(default=0)
    errored: int = Field(default=0)
    canceled: int = Field(default=0)
    layers: List[Layer] = Field(default_factory=list)

    @computed_field
    @property
    def total_layers(self) -> int:
        return self.done + self.cached + self.errored + self.canceled

    @property
    def cache_hit_ratio(self) -> float:
        if self.total_layers == 0:
            return 0.0
        return self.cached / self.total_layers

    def count(self, state: LayerState) -> int:
        counts = {
            LayerState.DONE: self.done,
            LayerState.CACHED: self.cached,
            LayerState.ERRORED: self.errored,
            LayerState.CANCELED: self.canceled,
        }
        return counts[state]

    def layer(self, index: int) -> Optional[LayerStatus]:
        for layer in self.layers:
            if layer.index == index:
                return layer.layer_status
        return None

    def to_report(self) -> Dict[str, Any]:
        return {
            "total_layers": self.total_layers,
            "done": self.done,
            "cached": self.cached,
            "errored": self.errored,
            "canceled": self.canceled,
            "layers": [
                {
                    "index": layer.index,
                    "layer_status": {
                        "status": layer.layer_status.status.value,
                        "time": layer.layer_status.time or 0,
                    },
                }
                for layer in self.layers
            ],
        }
