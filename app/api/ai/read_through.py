# app/api/ai/read_through.py

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FetchTimeout
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError

from app.api.ai.errors import PipelineError
from app.api.ai.orchestrator import AgentOrchestrator, BusinessIdeaInput, CombinedAnalysis
from app.api.ai.sanitize_html import cleanse_json
from app.config import AGENT_IDS
from app.database import crud
from app.database.database import db_session
from app.storage.sample_reports import sample_analysis

logger = logging.getLogger(__name__)

DEFAULT_DB_TIMEOUT_SECONDS = 5.0


def idea_input_from_row(row) -> BusinessIdeaInput:
    """Build the orchestrator input from a ``business_ideas`` row."""
    extras = row.idea_data or {}
    return BusinessIdeaInput(
        title=row.title,
        description=row.description,
        category=row.category,
        tier=row.tier or "public",
        target_market=row.target_market,
        business_model=row.business_model,
        user_context=extras.get("userContext"),
        founder_background=extras.get("founderBackground"),
        analysis_depth=extras.get("analysisDepth"),
    )


def _market_size_tam(analysis: CombinedAnalysis) -> Optional[str]:
    result = analysis.financial_modeling
    if result is None or not result.usable:
        return None
    return result.output.market_size.tam.value


class ReadThroughService:
    """
    Serves an analysis for a stored idea from the first tier that can
    produce one: the latest stored report, a freshly generated analysis,
    or the static sample. The tier used is written to ``metadata.tier``.
    """

    def __init__(
        self,
        session_factory: Callable,
        orchestrator_factory: Callable[[], AgentOrchestrator],
        db_timeout: float = DEFAULT_DB_TIMEOUT_SECONDS,
    ):
        self.session_factory = session_factory
        self.orchestrator_factory = orchestrator_factory
        self.db_timeout = db_timeout
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="db-fetch")

    def get_analysis(self, opportunity_id, agents: Optional[Iterable[str]] = None) -> CombinedAnalysis:
        requested = self._check_agents(agents)

        stored = self._from_database(opportunity_id, requested)
        if stored is not None:
            return stored

        try:
            return self._generate(opportunity_id, requested)
        except Exception as e:
            logger.error("Generating analysis for %s failed, serving sample: %s", opportunity_id, e, exc_info=True)

        sample = sample_analysis(opportunity_id)
        logger.info("Serving sample analysis for %s", opportunity_id)
        return sample

    def shutdown(self):
        self._executor.shutdown(wait=False)

    # -- tiers ------------------------------------------------------------

    @staticmethod
    def _check_agents(agents: Optional[Iterable[str]]) -> Optional[List[str]]:
        if agents is None:
            return None
        requested = list(agents)
        unknown = [name for name in requested if name not in AGENT_IDS]
        if unknown:
            raise ValueError("Unknown agent(s): %s" % ", ".join(unknown))
        return requested

    def _fetch_report(self, idea_id: int):
        with db_session(self.session_factory) as db:
            row = crud.get_latest_report(db, idea_id)
            return row.report if row is not None else None

    def _from_database(self, opportunity_id, requested: Optional[List[str]]) -> Optional[CombinedAnalysis]:
        try:
            idea_id = int(opportunity_id)
        except (TypeError, ValueError):
            logger.warning("Opportunity id %r is not a stored idea id", opportunity_id)
            return None

        future = self._executor.submit(self._fetch_report, idea_id)
        try:
            report = future.result(timeout=self.db_timeout)
        except FetchTimeout:
            logger.warning("Report lookup for idea %s timed out after %ss", idea_id, self.db_timeout)
            return None
        except Exception as e:
            logger.warning("Report lookup for idea %s failed: %s", idea_id, e)
            return None

        if report is None:
            logger.info("No stored report for idea %s", idea_id)
            return None

        try:
            analysis = CombinedAnalysis.model_validate(report)
        except ValidationError as e:
            logger.warning("Stored report for idea %s no longer validates: %s", idea_id, e)
            return None

        needed = requested or analysis.metadata.agents_executed
        covered = analysis.agents_covered()
        missing = [agent_id for agent_id in needed if agent_id not in covered]
        if missing:
            logger.info("Stored report for idea %s lacks usable %s; regenerating", idea_id, missing)
            return None

        analysis.metadata.tier = "database"
        logger.info("Serving stored report for idea %s", idea_id)
        return analysis

    def _generate(self, opportunity_id, requested: Optional[List[str]]) -> CombinedAnalysis:
        idea_id = int(opportunity_id)
        with db_session(self.session_factory) as db:
            row = crud.get_idea(db, idea_id)
            if row is None:
                raise LookupError("Idea %s not found" % idea_id)
            idea = idea_input_from_row(row)

        orchestrator = self.orchestrator_factory()
        analysis = orchestrator.analyze(idea, requested)
        if not analysis.success:
            raise PipelineError("No agent produced a usable result for idea %s" % idea_id)

        analysis = CombinedAnalysis.model_validate(
            cleanse_json(analysis.model_dump(mode="json", by_alias=True))
        )
        analysis.metadata.tier = "generated"
        self._persist(idea_id, analysis)
        return analysis

    def _persist(self, idea_id: int, analysis: CombinedAnalysis):
        try:
            with db_session(self.session_factory) as db:
                crud.save_analysis_report(
                    db,
                    idea_id,
                    analysis.model_dump(mode="json", by_alias=True),
                    overall_confidence=analysis.confidence.overall,
                    market_size_tam=_market_size_tam(analysis),
                )
        except Exception as e:
            logger.error("Failed to store analysis for idea %s: %s", idea_id, e, exc_info=True)
