"""
Shared lifecycle for every analysis agent.

``BaseAgent.execute`` runs the same steps for each agent:

1. validate the input against ``input_model`` (field-level issues, no LLM call
   on failure);
2. look the request up in the cache;
3. ``process_request``: the agent's stage pipeline;
4. validate the assembled payload against ``output_model`` and run the
   agent's business checks;
5. quality assurance (heuristic score and warnings, never aborts);
6. store fresh valid output in the cache;
7. return an :class:`AgentResult` with confidence and execution metadata.

Per-run counters live in thread-local state so one agent instance can serve
concurrent requests from the orchestrator's worker pool.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Type, get_origin

from pydantic import BaseModel, ValidationError

from app.api.ai.errors import CacheError, DataSourceError, ResponseParseError
from app.api.ai.metrics import MetricsCollector
from app.api.ai.pipeline import Pipeline, PipelineRun, adapter_for
from app.api.ai.providers.cache import CacheProvider, make_cache_key
from app.api.ai.providers.data_source import DataRequest, DataSourceProvider
from app.api.ai.providers.llm import LLMOptions, LLMProvider
from app.api.ai.schemas import (
    AgentContext,
    AgentMetadata,
    AgentResult,
    ExecutionMetrics,
    QualityReport,
    ValidationIssue,
)
from app.api.ai.utils import strip_code_fences

logger = logging.getLogger(__name__)


class AgentStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    VALIDATING = "validating"
    COMPLETED = "completed"
    FAILED = "failed"


def issues_from_validation_error(exc: ValidationError, prefix: str = "") -> List[ValidationIssue]:
    issues = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        field = ".".join(part for part in (prefix, loc) if part) or "input"
        issues.append(ValidationIssue(field=field, message=err.get("msg", "Invalid value"), severity="error"))
    return issues


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class _RunState:
    def __init__(self):
        self.metrics = ExecutionMetrics()
        self.fallback_stages: List[str] = []
        self.error_code = "INVALID_OUTPUT"


class BaseAgent:
    agent_id = "base"
    version = "1.0.0"
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]

    def __init__(
        self,
        llm: LLMProvider,
        cache: Optional[CacheProvider] = None,
        data_source: Optional[DataSourceProvider] = None,
        cache_ttl: int = 3600,
        min_confidence: int = 70,
    ):
        self.llm = llm
        self.cache = cache
        self.data_source = data_source
        self.cache_ttl = cache_ttl
        self.min_confidence = min_confidence
        self._local = threading.local()
        self._lock = threading.Lock()
        self._active_runs = 0
        self._last_status = AgentStatus.IDLE
        self.metrics = MetricsCollector(self.agent_id)

    # -- status ---------------------------------------------------------

    @property
    def status(self) -> AgentStatus:
        with self._lock:
            if self._active_runs:
                return AgentStatus.PROCESSING
            return self._last_status

    @property
    def is_busy(self) -> bool:
        return self.status == AgentStatus.PROCESSING

    @property
    def _run(self) -> _RunState:
        state = getattr(self._local, "state", None)
        if state is None:
            state = _RunState()
            self._local.state = state
        return state

    def _begin_run(self):
        self._local.state = _RunState()
        with self._lock:
            self._active_runs += 1

    def _end_run(self, status: AgentStatus):
        with self._lock:
            self._active_runs -= 1
            self._last_status = status

    # -- lifecycle ------------------------------------------------------

    def execute(self, inp: Any, context: Optional[AgentContext] = None) -> AgentResult:
        context = context or AgentContext()
        started = time.perf_counter()
        self._begin_run()
        final_status = AgentStatus.FAILED
        try:
            result = self._execute(inp, context, started)
            if result.success:
                final_status = AgentStatus.COMPLETED
                self.metrics.record_execution(result.metadata, context.request_id)
            else:
                self.metrics.record_error(
                    self._run.error_code,
                    "; ".join("%s: %s" % (i.field, i.message) for i in result.errors[:3]),
                    context.request_id,
                    result.metadata.duration_ms,
                )
            return result
        except Exception as exc:
            self.metrics.record_error(type(exc).__name__, str(exc), context.request_id, _elapsed_ms(started))
            raise
        finally:
            self._end_run(final_status)

    def _execute(self, inp: Any, context: AgentContext, started: float) -> AgentResult:
        try:
            validated = self.validate_input(inp)
        except ValidationError as exc:
            issues = issues_from_validation_error(exc)
            logger.warning(
                "%s rejected input for request %s: %s",
                self.agent_id,
                context.request_id,
                "; ".join("%s: %s" % (i.field, i.message) for i in issues),
            )
            self._run.error_code = "INVALID_INPUT"
            return self._result(None, issues, started, is_valid=False, success=False)

        cache_key = self.cache_key(validated, context)
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.info("%s cache hit for request %s", self.agent_id, context.request_id)
            quality = self._quality(cached, context)
            return self._result(cached, quality.issues, started, cached=True)

        logger.info("%s processing request %s", self.agent_id, context.request_id)
        payload = self.process_request(validated, context)

        with self._lock:
            self._last_status = AgentStatus.VALIDATING
        output, issues = self.validate_output(payload)
        if output is None:
            logger.error(
                "%s produced output that failed schema validation for request %s",
                self.agent_id,
                context.request_id,
            )
            self._run.error_code = "INVALID_OUTPUT"
            return self._result(None, issues, started, is_valid=False, success=False)

        quality = self._quality(output, context)
        issues.extend(quality.issues)
        elapsed = time.perf_counter() - started
        if context.time_budget_seconds and elapsed > context.time_budget_seconds:
            issues.append(ValidationIssue(
                field="timeBudgetSeconds",
                message="Analysis took %.1fs, over the %.1fs budget" % (elapsed, context.time_budget_seconds),
                severity="info",
            ))
        self._cache_set(cache_key, output)
        return self._result(output, issues, started)

    def validate_input(self, inp: Any) -> BaseModel:
        if isinstance(inp, self.input_model):
            return inp
        if isinstance(inp, BaseModel):
            inp = inp.model_dump(by_alias=True)
        return self.input_model.model_validate(inp)

    def process_request(self, inp: BaseModel, context: AgentContext) -> Dict[str, Any]:
        raise NotImplementedError

    def validate_output(self, payload: Any):
        try:
            output = self.output_model.model_validate(payload)
        except ValidationError as exc:
            return None, issues_from_validation_error(exc, prefix="output")
        return output, self.business_checks(output)

    def business_checks(self, output: BaseModel) -> List[ValidationIssue]:
        return []

    def perform_quality_assurance(self, output: BaseModel, context: AgentContext) -> QualityReport:
        return QualityReport(score=output.confidence.overall)

    def _quality(self, output: BaseModel, context: AgentContext) -> QualityReport:
        report = self.perform_quality_assurance(output, context)
        self._run.metrics.quality_score = report.score
        if report.score < self.min_confidence:
            logger.warning(
                "%s quality score %.1f below minimum %s for request %s",
                self.agent_id,
                report.score,
                self.min_confidence,
                context.request_id,
            )
        return report

    def _result(self, output, issues, started, is_valid=True, success=True, cached=False) -> AgentResult:
        run = self._run
        duration_ms = _elapsed_ms(started)
        metadata = AgentMetadata(
            agent_id=self.agent_id,
            version=self.version,
            duration_ms=duration_ms,
            tokens_used=run.metrics.tokens_used,
            cached=cached,
            fallback_stages=list(run.fallback_stages),
            metrics=run.metrics.model_copy(),
        )
        confidence = output.confidence.overall if output is not None else 0
        return AgentResult[self.output_model](
            agent_id=self.agent_id,
            success=success,
            is_valid=is_valid,
            output=output,
            confidence=confidence,
            errors=issues,
            metadata=metadata,
        )

    # -- cache ----------------------------------------------------------

    def cache_key(self, inp: BaseModel, context: AgentContext) -> str:
        payload = inp.model_dump(mode="json", by_alias=True, exclude_none=True)
        return make_cache_key(self.agent_id, self.version, context.analysis_depth, payload)

    def _cache_get(self, key: str) -> Optional[BaseModel]:
        if self.cache is None:
            return None
        try:
            raw = self.cache.get(key)
        except CacheError as e:
            logger.warning("%s cache read failed, treating as miss: %s", self.agent_id, e)
            raw = None
        if raw is None:
            self._run.metrics.cache_misses += 1
            return None
        try:
            output = self.output_model.model_validate(raw)
        except ValidationError:
            logger.warning("%s discarded a cached entry that no longer validates", self.agent_id)
            self._run.metrics.cache_misses += 1
            return None
        self._run.metrics.cache_hits += 1
        return output

    def _cache_set(self, key: str, output: BaseModel):
        if self.cache is None:
            return
        try:
            self.cache.set(key, output.model_dump(mode="json", by_alias=True), ttl=self.cache_ttl)
        except CacheError as e:
            logger.warning("%s cache write failed: %s", self.agent_id, e)

    # -- helpers for concrete agents -------------------------------------

    def run_pipeline(self, pipeline: Pipeline, inp: BaseModel, context: AgentContext) -> PipelineRun:
        run = pipeline.run(inp, context)
        self._run.fallback_stages.extend(run.fallback_stages)
        self._run.metrics.error_count += len(run.fallback_stages)
        return run

    def note_fallback(self, stage_name: str):
        self._run.fallback_stages.append(stage_name)
        self._run.metrics.error_count += 1

    def call_llm(self, prompt: str, temperature: float = 0.7, max_tokens: int = 2000, format: str = "json") -> str:
        metrics = self._run.metrics
        metrics.api_calls += 1
        response = self.llm.generate(
            prompt, LLMOptions(format=format, temperature=temperature, max_tokens=max_tokens)
        )
        metrics.tokens_used += response.tokens_used
        return response.text

    def parse_json(self, text: str, schema: Any) -> Any:
        """Strip fences, decode, and validate into ``schema`` (a model or typing form)."""
        cleaned = strip_code_fences(text)
        try:
            data = json.loads(cleaned)
        except ValueError as e:
            raise ResponseParseError("%s returned invalid JSON: %s" % (self.agent_id, e)) from e
        if get_origin(schema) is list and isinstance(data, dict):
            # json_object mode wraps arrays, e.g. {"risks": [...]}
            data = next((value for value in data.values() if isinstance(value, list)), data)
        return adapter_for(schema).validate_python(data)

    def ask(self, prompt: str, schema: Any, temperature: float, max_tokens: int) -> Any:
        return self.parse_json(self.call_llm(prompt, temperature, max_tokens), schema)

    def fetch_enrichment(self, data_type: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.data_source is None:
            return None
        try:
            response = self.data_source.fetch_data(DataRequest(type=data_type, params=params))
        except DataSourceError as e:
            logger.warning("%s enrichment '%s' unavailable: %s", self.agent_id, data_type, e)
            return None
        if not response.success:
            return None
        return response.data

    @staticmethod
    def enrichment_text(label: str, data: Optional[Dict[str, Any]]) -> str:
        if not data:
            return ""
        return "%s: %s" % (label, json.dumps(data, default=str))
