import json

from sentiscope.services import analysis_db_service


def test_analyze_single_text_saves_by_default(client, auth_headers, fake_classifier, user_id):
    response = client.post("/api/analysis/analyze", json={"text": "I love this"}, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["result"]["sentiment"]["label"] == "positive"
    assert data["analysisId"]
    stored = analysis_db_service.get_analysis_by_id(data["analysisId"], user_id)
    assert stored["inputType"] == "text"
    assert stored["positiveCount"] == 1


def test_analyze_without_saving(client, auth_headers, fake_classifier, user_id):
    response = client.post(
        "/api/analysis/analyze", json={"text": "It's fine", "saveToDb": False}, headers=auth_headers
    )

    assert response.status_code == 201
    assert response.json()["data"]["analysisId"] is None
    assert analysis_db_service.get_user_analysis_count(user_id) == 0


def test_analyze_requires_auth(client, fake_classifier):
    response = client.post("/api/analysis/analyze", json={"text": "I love this"})
    assert response.status_code == 401
    assert fake_classifier == []


def test_batch(client, auth_headers, fake_classifier):
    texts = ["I love this", "I hate this", "It's fine", "boom"]
    response = client.post("/api/analysis/batch", json={"texts": texts, "title": "Mixed"}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert [r["sentiment"]["label"] for r in data["results"]] == ["positive", "negative", "neutral", "error"]
    assert data["statistics"]["total"] == 4
    assert data["statistics"]["error"] == 1


def test_batch_over_limit(client, auth_headers, fake_classifier):
    response = client.post("/api/analysis/batch", json={"texts": ["x"] * 101}, headers=auth_headers)
    assert response.status_code == 400
    assert fake_classifier == []


def test_keywords(client, auth_headers, fake_classifier, user_id):
    response = client.post(
        "/api/analysis/keywords", json={"keywords": ["great service", "awful wifi"]}, headers=auth_headers
    )

    assert response.status_code == 200
    analysis_id = response.json()["data"]["analysisId"]
    assert analysis_db_service.get_analysis_by_id(analysis_id, user_id)["inputType"] == "keywords"


def test_deep_without_openai_is_unavailable(client, auth_headers):
    response = client.post("/api/analysis/deep", json={"text": "so-so"}, headers=auth_headers)
    assert response.status_code == 503
    assert response.json()["success"] is False


def test_deep_with_insights(monkeypatch, client, auth_headers, user_id):
    monkeypatch.setattr("sentiscope.config.OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("sentiscope.services.openai_service.DEEP_BATCH_DELAY", 0)

    async def fake_complete(messages, *, temperature, max_tokens, json_mode=False):
        if json_mode:
            return json.dumps({"sentiment": "positive", "score": 0.95, "explanation": "Happy", "keyPhrases": ["love"]})
        return "1. OVERALL SENTIMENT: positive"

    monkeypatch.setattr("sentiscope.services.openai_service._complete", fake_complete)

    response = client.post(
        "/api/analysis/deep", json={"texts": ["I love it", "Really love it"]}, headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["results"][0]["sentiment"] == {"label": "positive", "score": 0.95}
    assert data["results"][0]["keyPhrases"] == ["love"]
    assert data["insights"].startswith("1. OVERALL SENTIMENT")
    stored = analysis_db_service.get_analysis_by_id(data["analysisId"], user_id)
    assert stored["aiInsights"] == data["insights"]
    assert stored["inputType"] == "batch"


def test_history_and_detail(client, auth_headers, fake_classifier):
    for text in ("I love this", "I hate this"):
        client.post("/api/analysis/analyze", json={"text": text}, headers=auth_headers)

    history = client.get("/api/analysis/history", params={"limit": 1}, headers=auth_headers).json()["data"]
    assert history["total"] == 2
    assert len(history["analyses"]) == 1

    analysis_id = history["analyses"][0]["id"]
    detail = client.get(f"/api/analysis/history/{analysis_id}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["items"][0]["textContent"] == "I hate this"


def test_detail_of_another_users_analysis(client, auth_headers, user_id):
    saved = analysis_db_service.save_analysis(
        user_id="someone-else",
        title="theirs",
        input_type="text",
        results=[{"text": "hi", "sentiment": {"label": "neutral", "score": 0.5}}],
    )
    response = client.get(f"/api/analysis/history/{saved['id']}", headers=auth_headers)
    assert response.status_code == 404


def test_delete_twice(client, auth_headers, fake_classifier):
    analysis_id = client.post(
        "/api/analysis/analyze", json={"text": "I love this"}, headers=auth_headers
    ).json()["data"]["analysisId"]

    first = client.delete(f"/api/analysis/history/{analysis_id}", headers=auth_headers)
    second = client.delete(f"/api/analysis/history/{analysis_id}", headers=auth_headers)

    assert first.status_code == 200
    assert second.status_code == 404
    assert second.json() == {"success": False, "message": "Analysis not found"}


def test_reports(client, auth_headers, fake_classifier):
    client.post("/api/analysis/batch", json={"texts": ["I love this", "I hate this"]}, headers=auth_headers)

    report = client.get("/api/analysis/reports", headers=auth_headers).json()["data"]
    assert report["totalAnalyses"] == 1
    assert report["positive"] == 1
    assert report["negative"] == 1

    bad_window = client.get(
        "/api/analysis/reports",
        params={"startDate": "2026-02-01T00:00:00", "endDate": "2026-01-01T00:00:00"},
        headers=auth_headers,
    )
    assert bad_window.status_code == 400


def test_reports_accept_timezone_suffixed_dates(client, auth_headers, fake_classifier):
    client.post("/api/analysis/batch", json={"texts": ["I love this", "I hate this"]}, headers=auth_headers)

    mixed = client.get(
        "/api/analysis/reports",
        params={"startDate": "2020-01-01T00:00:00Z", "endDate": "2099-01-01T00:00:00"},
        headers=auth_headers,
    )
    assert mixed.status_code == 200
    report = mixed.json()["data"]
    assert report["totalAnalyses"] == 1
    assert report["period"]["startDate"] == "2020-01-01T00:00:00"

    # 08:00+07:00 is 01:00 UTC, before the naive 05:00 end date
    offsets = client.get(
        "/api/analysis/reports",
        params={"startDate": "2026-01-01T08:00:00+07:00", "endDate": "2026-01-01T05:00:00"},
        headers=auth_headers,
    )
    assert offsets.status_code == 200
    assert offsets.json()["data"]["period"]["startDate"] == "2026-01-01T01:00:00"

    reversed_window = client.get(
        "/api/analysis/reports",
        params={"startDate": "2026-02-01T00:00:00Z", "endDate": "2026-01-01T00:00:00.000Z"},
        headers=auth_headers,
    )
    assert reversed_window.status_code == 400

    future = client.get(
        "/api/analysis/reports", params={"startDate": "2099-01-01T00:00:00Z"}, headers=auth_headers
    )
    assert future.json()["data"]["totalAnalyses"] == 0


def test_chat_persists_turns(monkeypatch, client, auth_headers, fake_classifier):
    monkeypatch.setattr("sentiscope.config.OPENAI_API_KEY", "sk-test")
    seen = {}

    async def fake_chat(message, context, history):
        seen["context"] = context
        seen["history"] = history
        return f"You asked: {message}"

    monkeypatch.setattr("sentiscope.services.openai_service.chat_about_analysis", fake_chat)
    analysis_id = client.post(
        "/api/analysis/batch", json={"texts": ["I love this", "It's fine"]}, headers=auth_headers
    ).json()["data"]["analysisId"]

    first = client.post("/api/analysis/chat", json={"message": "Summary?", "analysisId": analysis_id}, headers=auth_headers)
    client.post("/api/analysis/chat", json={"message": "And then?", "analysisId": analysis_id}, headers=auth_headers)

    assert first.json()["data"]["response"] == "You asked: Summary?"
    assert seen["context"]["statistics"]["total"] == 2
    assert [m["content"] for m in seen["history"]] == ["Summary?", "You asked: Summary?"]

    messages = client.get(f"/api/analysis/{analysis_id}/chat", headers=auth_headers).json()["data"]["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
    assert all(m["createdAt"] for m in messages)
    assert "created_at" not in messages[0]


def test_chat_needs_context_or_analysis(client, auth_headers):
    response = client.post("/api/analysis/chat", json={"message": "Hello"}, headers=auth_headers)
    assert response.status_code == 400
