from app.config import AGENT_IDS
from app.main import app, get_orchestrator

IDEA = {
    "title": "SmartFit AI",
    "description": "An AI-powered fitness app that adapts workout plans to wearable data and recovery.",
    "category": "Health & Fitness Technology",
    "targetMarket": "Busy professionals",
    "ideaData": {"userContext": {"budget": "moderate", "commitment": "full-time"}},
}


def _create(client, **overrides):
    response = client.post("/ideas", json=dict(IDEA, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


def test_idea_crud_flow(client):
    created = _create(client)
    idea_id = created["id"]
    assert created["targetMarket"] == "Busy professionals"
    assert created["tier"] == "public"
    assert created["confidenceOverall"] is None

    fetched = client.get("/ideas/%s" % idea_id)
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "SmartFit AI"

    updated = client.put("/ideas/%s" % idea_id, json={"businessModel": "Subscription"})
    assert updated.status_code == 200
    body = updated.json()
    assert body["businessModel"] == "Subscription"
    assert body["title"] == "SmartFit AI"

    listing = client.get("/ideas")
    assert [idea["id"] for idea in listing.json()] == [idea_id]

    assert client.delete("/ideas/%s" % idea_id).status_code == 204
    assert client.get("/ideas/%s" % idea_id).status_code == 404


def test_missing_ideas_return_404(client):
    assert client.get("/ideas/12345").json() == {"detail": "Idea not found"}
    assert client.put("/ideas/12345", json={"title": "New title"}).status_code == 404
    assert client.delete("/ideas/12345").status_code == 404


def test_idea_validation(client):
    response = client.post("/ideas", json=dict(IDEA, title="ab"))
    assert response.status_code == 422
    assert client.get("/ideas", params={"limit": 0}).status_code == 422


def test_list_ideas_paginates(client):
    ids = [_create(client, title="Idea number %d" % i)["id"] for i in range(3)]
    page = client.get("/ideas", params={"limit": 2, "offset": 1}).json()
    assert len(page) == 2
    assert {idea["id"] for idea in page} <= set(ids)


def test_analyze_generates_then_serves_stored_report(client, mock_llm):
    idea_id = _create(client)["id"]

    first = client.post("/ai-agents/analyze", json={"opportunityId": str(idea_id)})

    assert first.status_code == 200, first.text
    body = first.json()
    assert body["success"] is True
    assert body["metadata"]["tier"] == "generated"
    assert body["metadata"]["agentsExecuted"] == list(AGENT_IDS)
    assert "requestId" in body
    assert "overallRiskScore" in body["riskAssessment"]["output"]
    assert "revenue5Year" in body["financialModeling"]["output"]["scenarios"]["realistic"]
    assert mock_llm.call_count == 22

    second = client.post("/ai-agents/analyze", json={"opportunityId": str(idea_id)})
    assert second.json()["metadata"]["tier"] == "database"
    assert second.json()["requestId"] == body["requestId"]
    assert mock_llm.call_count == 22

    idea = client.get("/ideas/%s" % idea_id).json()
    assert idea["confidenceOverall"] == body["confidence"]["overall"]
    assert idea["marketSizeTam"] == "$50B"


def test_analyze_subset_of_agents(client):
    idea_id = _create(client)["id"]
    response = client.post(
        "/ai-agents/analyze",
        json={"opportunityId": str(idea_id), "agents": ["market-research"]},
    )
    body = response.json()
    assert body["metadata"]["agentsExecuted"] == ["market-research"]
    assert body["financialModeling"] is None


def test_analyze_unknown_agent_is_422(client):
    response = client.post("/ai-agents/analyze", json={"opportunityId": "1", "agents": ["astrology"]})
    assert response.status_code == 422
    assert "astrology" in response.json()["detail"]


def test_analyze_unknown_idea_serves_sample(client):
    response = client.post("/ai-agents/analyze", json={"opportunityId": "404404"})
    body = response.json()
    assert response.status_code == 200
    assert body["metadata"]["tier"] == "sample"
    assert body["requestId"] == "sample_404404"


def test_analyze_requires_opportunity_id(client):
    assert client.post("/ai-agents/analyze", json={}).status_code == 422
    assert client.post("/ai-agents/analyze", json={"opportunityId": ""}).status_code == 422


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "venture-agents"
    assert body["agents"] == {agent_id: "ready" for agent_id in AGENT_IDS}
    assert body["providers"] == {"llm": "mock", "cache": True, "dataSource": True}
    assert body["activeExecutions"] == 0
    assert body["metrics"]["risk-assessment"]["status"] == "healthy"
    assert body["metrics"]["risk-assessment"]["metrics"]["totalExecutions"] == 0
    assert "timestamp" in body


def test_health_without_orchestrator_is_degraded(client):
    app.dependency_overrides[get_orchestrator] = lambda: None

    body = client.get("/health").json()

    assert body["status"] == "degraded"
    assert set(body["agents"].values()) == {"disabled"}
    assert body["providers"]["llm"] is None


def test_update_rejects_null_for_required_fields(client):
    idea_id = _create(client)["id"]

    for field in ("title", "description", "category", "tier"):
        response = client.put("/ideas/%s" % idea_id, json={field: None})
        assert response.status_code == 422, field

    cleared = client.put("/ideas/%s" % idea_id, json={"targetMarket": None})
    assert cleared.status_code == 200
    assert cleared.json()["targetMarket"] is None
    assert cleared.json()["title"] == "SmartFit AI"


def test_data_source_health(client):
    body = client.get("/health/data-source").json()
    assert body == {"provider": "mock", "connected": True, "rateLimit": None}

    app.dependency_overrides[get_orchestrator] = lambda: None
    assert client.get("/health/data-source").json()["connected"] is False


def test_agent_metrics_endpoint(client):
    idea_id = _create(client)["id"]
    client.post("/ai-agents/analyze", json={"opportunityId": str(idea_id), "agents": ["market-research"]})

    response = client.get("/health/agents/market-research", params={"hours": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["aggregated"]["totalExecutions"] == 1
    assert body["aggregated"]["timeRangeHours"] == 1
    assert set(body["percentiles"]) == {"executionTimeMs", "tokensUsed", "qualityScore"}
    assert client.get("/health/agents/legal-review").status_code == 404
