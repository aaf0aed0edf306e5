import threading

import pytest

from app.api.ai.errors import ConfigurationError
from app.api.ai.orchestrator import CombinedAnalysis, failed_result
from app.api.ai.read_through import ReadThroughService, idea_input_from_row
from app.config import AGENT_IDS
from app.database import crud
from app.storage.sample_reports import sample_analysis


SMARTFIT = {
    "title": "SmartFit AI",
    "description": "An AI-powered fitness app that adapts workout plans to wearable data and recovery.",
    "category": "Health & Fitness Technology",
}


@pytest.fixture
def idea(db):
    return crud.create_idea(db, dict(SMARTFIT, idea_data={"userContext": {"budget": "moderate"}}))


def _stored_reports(session_factory, idea_id):
    with session_factory() as db:
        row = crud.get_latest_report(db, idea_id)
        return row.report if row is not None else None


def test_sample_report_is_complete():
    analysis = sample_analysis()

    assert analysis.request_id == "sample"
    assert analysis.success
    assert analysis.metadata.tier == "sample"
    assert analysis.agents_covered() == list(AGENT_IDS)
    for agent_id in AGENT_IDS:
        result = analysis.result_for(agent_id)
        assert result.usable and result.metadata.cached
    breakdown = analysis.confidence.breakdown
    assert analysis.confidence.overall == round(sum(breakdown.values()) / len(breakdown))
    assert sample_analysis("42").request_id == "sample_42"


def test_sample_report_survives_the_wire_format():
    data = sample_analysis().model_dump(mode="json", by_alias=True)
    assert CombinedAnalysis.model_validate(data).input.title == "SmartFit AI"


def test_idea_input_from_row_reads_extras(idea):
    parsed = idea_input_from_row(idea)
    assert parsed.title == "SmartFit AI"
    assert parsed.tier == "public"
    assert parsed.user_context.budget == "moderate"
    assert parsed.founder_background is None


def test_generates_and_stores_when_nothing_is_stored(read_through, idea, session_factory, mock_llm):
    analysis = read_through.get_analysis(str(idea.id))

    assert analysis.metadata.tier == "generated"
    assert analysis.success
    assert mock_llm.call_count == 22

    stored = _stored_reports(session_factory, idea.id)
    assert stored["requestId"] == analysis.request_id
    with session_factory() as db:
        row = crud.get_idea(db, idea.id)
        assert row.confidence_overall == analysis.confidence.overall
        assert row.market_size_tam == "$50B"


def test_second_request_is_served_from_database(read_through, idea, mock_llm):
    first = read_through.get_analysis(idea.id)
    calls = mock_llm.call_count

    second = read_through.get_analysis(idea.id)

    assert second.metadata.tier == "database"
    assert second.request_id == first.request_id
    assert mock_llm.call_count == calls


def test_stored_report_must_cover_requested_agents(read_through, idea):
    assert read_through.get_analysis(idea.id, ["market-research"]).metadata.tier == "generated"
    assert read_through.get_analysis(idea.id, ["market-research"]).metadata.tier == "database"

    wider = read_through.get_analysis(idea.id, ["market-research", "risk-assessment"])

    assert wider.metadata.tier == "generated"
    assert wider.agents_covered() == ["market-research", "risk-assessment"]


def test_invalid_stored_report_is_regenerated(read_through, idea, db):
    crud.save_analysis_report(db, idea.id, {"requestId": "broken"})
    assert read_through.get_analysis(idea.id).metadata.tier == "generated"


@pytest.mark.parametrize("opportunity_id", ["999", "not-a-number"])
def test_unknown_idea_gets_the_sample(read_through, opportunity_id, mock_llm):
    analysis = read_through.get_analysis(opportunity_id)

    assert analysis.metadata.tier == "sample"
    assert analysis.request_id == "sample_%s" % opportunity_id
    assert mock_llm.call_count == 0


def test_unconfigured_orchestrator_gets_the_sample(session_factory, idea):
    def no_orchestrator():
        raise ConfigurationError("OPENAI_API_KEY is required")

    service = ReadThroughService(session_factory, no_orchestrator, db_timeout=2)
    try:
        analysis = service.get_analysis(idea.id)
    finally:
        service.shutdown()

    assert analysis.metadata.tier == "sample"
    assert _stored_reports(session_factory, idea.id) is None


def test_unknown_agent_is_rejected_before_any_tier(read_through, idea, mock_llm):
    with pytest.raises(ValueError, match="bogus"):
        read_through.get_analysis(idea.id, ["bogus"])
    assert mock_llm.call_count == 0


def test_slow_database_lookup_falls_through_to_generation(
    session_factory, orchestrator, idea, db, monkeypatch
):
    crud.save_analysis_report(db, idea.id, sample_analysis(idea.id).model_dump(mode="json", by_alias=True))
    release = threading.Event()

    def stuck_lookup(session, idea_id):
        release.wait(5)
        return None

    monkeypatch.setattr(crud, "get_latest_report", stuck_lookup)
    service = ReadThroughService(session_factory, lambda: orchestrator, db_timeout=0.05)
    try:
        analysis = service.get_analysis(idea.id)
    finally:
        release.set()
        service.shutdown()

    assert analysis.metadata.tier == "generated"


def test_stored_sample_report_is_served_as_database_tier(read_through, idea, db, mock_llm):
    crud.save_analysis_report(db, idea.id, sample_analysis(idea.id).model_dump(mode="json", by_alias=True))

    analysis = read_through.get_analysis(idea.id)

    assert analysis.metadata.tier == "database"
    assert analysis.request_id == "sample_%s" % idea.id
    assert mock_llm.call_count == 0


def _store_report_with_failed_risk(db, idea_id):
    report = sample_analysis(idea_id)
    report.risk_assessment = failed_result("risk-assessment", RuntimeError("upstream timeout"))
    report.metadata.agents_failed = ["risk-assessment"]
    crud.save_analysis_report(db, idea_id, report.model_dump(mode="json", by_alias=True))


def test_failed_agent_slot_does_not_count_as_covered():
    report = sample_analysis()
    report.risk_assessment = failed_result("risk-assessment", RuntimeError("upstream timeout"))
    assert "risk-assessment" not in report.agents_covered()


@pytest.mark.parametrize("agents", [["risk-assessment"], None])
def test_stored_report_with_failed_agent_is_regenerated(read_through, idea, db, agents):
    _store_report_with_failed_risk(db, idea.id)

    analysis = read_through.get_analysis(idea.id, agents)

    assert analysis.metadata.tier == "generated"
    assert analysis.risk_assessment.usable
    assert analysis.metadata.agents_failed == []
