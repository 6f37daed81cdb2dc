"""Ordered chain of stages sharing each entry's extraction map.

Stage definitions come from the ``pipeline_stages`` list of the YAML config;
each item is a mapping with a single key naming the stage type.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Callable

from logpipe.json_stage import JSONStage
from logpipe.metrics import Registry
from logpipe.models import Entry, new_entry

logger = logging.getLogger(__name__)

STAGE_TYPES: dict[str, Callable] = {
    JSONStage.name: JSONStage.from_dict,
}


class PipelineError(ValueError):
    """Raised when the pipeline_stages definition is invalid."""


class Pipeline:
    def __init__(self, stages: Sequence):
        self._stages = list(stages)

    @classmethod
    def from_config(cls, stage_defs, registry: Registry | None = None) -> "Pipeline":
        if not isinstance(stage_defs, Sequence) or isinstance(stage_defs, str):
            raise PipelineError("pipeline_stages must be a list")

        stages = []
        for i, stage_def in enumerate(stage_defs):
            if not isinstance(stage_def, Mapping) or len(stage_def) != 1:
                raise PipelineError(
                    f"pipeline stage {i} must be a mapping with exactly one key"
                )
            (stage_type, raw), = stage_def.items()
            factory = STAGE_TYPES.get(stage_type)
            if factory is None:
                raise PipelineError(f"unknown stage type {stage_type!r} at position {i}")
            stages.append(factory(raw, registry))

        logger.info("Pipeline built with %d stage(s)", len(stages))
        return cls(stages)

    def __len__(self) -> int:
        return len(self._stages)

    def run(self, entries: Iterable[Entry]) -> list[Entry]:
        """Feed *entries* through every stage in order."""
        out = list(entries)
        for stage in self._stages:
            out = stage.run(out)
        return out

    def process_line(
        self,
        line: str,
        labels: dict[str, str] | None = None,
        timestamp: datetime | None = None,
    ) -> Entry | None:
        """Run one line through the chain. Returns None if a stage dropped it."""
        out = self.run([new_entry(line, labels=labels, timestamp=timestamp)])
        return out[0] if out else None
