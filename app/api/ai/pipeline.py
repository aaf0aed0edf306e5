"""
Ordered stage runner used inside every agent.

A stage names the earlier stages it depends on; the runner passes exactly
those results as keyword arguments, so the data flow of an agent is visible
from its stage table rather than hidden in call order::

    Pipeline("risk-assessment", [
        Stage("risk_identification", identify, model=List[RiskCategory]),
        Stage("mitigation", mitigate, requires=("risk_identification",),
              model=List[MitigationStrategy]),
    ])

When a stage fails with a recoverable error (vendor failure, unparseable or
schema-invalid model output) the runner substitutes the entry registered in
:mod:`app.api.ai.fallbacks` for ``(agent_id, stage.name)``. Anything else is a
defect and propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, List, Sequence, Tuple

from pydantic import TypeAdapter, ValidationError

from app.api.ai import fallbacks
from app.api.ai.errors import LLMProviderError, PipelineError, ResponseParseError

logger = logging.getLogger(__name__)

RECOVERABLE_ERRORS = (LLMProviderError, ResponseParseError, ValidationError)


@lru_cache(maxsize=None)
def adapter_for(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


@dataclass(frozen=True)
class Stage:
    name: str
    run: Callable[..., Any]
    requires: Tuple[str, ...] = ()
    # Type the stage produces; fallback records are validated into it.
    model: Any = None
    # Local computations have no fallback: their failures are defects.
    recoverable: bool = True


@dataclass
class PipelineRun:
    results: Dict[str, Any] = field(default_factory=dict)
    fallback_stages: List[str] = field(default_factory=list)

    def __getitem__(self, name: str) -> Any:
        return self.results[name]


class Pipeline:
    def __init__(self, agent_id: str, stages: Sequence[Stage]):
        self.agent_id = agent_id
        self.stages = list(stages)
        names = [stage.name for stage in self.stages]
        if len(set(names)) != len(names):
            raise PipelineError("Duplicate stage names in %s pipeline: %s" % (agent_id, names))

    def run(self, inp: Any, context: Any) -> PipelineRun:
        run = PipelineRun()
        for stage in self.stages:
            missing = [name for name in stage.requires if name not in run.results]
            if missing:
                raise PipelineError(
                    "Stage '%s' of %s requires %s before it can run"
                    % (stage.name, self.agent_id, ", ".join(missing))
                )
            deps = {name: run.results[name] for name in stage.requires}

            try:
                run.results[stage.name] = stage.run(inp, context, **deps)
            except RECOVERABLE_ERRORS as exc:
                if not stage.recoverable:
                    raise
                logger.warning(
                    "%s stage '%s' failed (%s: %s); using fallback.",
                    self.agent_id,
                    stage.name,
                    type(exc).__name__,
                    str(exc)[:300],
                )
                run.results[stage.name] = self.fallback(stage, inp, deps)
                run.fallback_stages.append(stage.name)
        return run

    def fallback(self, stage: Stage, inp: Any, deps: Dict[str, Any]) -> Any:
        raw = fallbacks.resolve(self.agent_id, stage.name, inp, **deps)
        if stage.model is None:
            return raw
        return adapter_for(stage.model).validate_python(raw)


def validate_fallback(agent_id: str, key: str, schema: Any, inp: Any, **deps: Any) -> Any:
    """Resolve and validate a fallback outside the stage runner (per-item recovery)."""
    raw = fallbacks.resolve(agent_id, key, inp, **deps)
    return adapter_for(schema).validate_python(raw)
