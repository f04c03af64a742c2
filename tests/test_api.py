import re

import pytest

from conftest import make_entry


ENTRY = "I have been anxious about my chemistry exam all week and I can't focus on anything else."


def test_health(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_analyze_requires_content(client):
    response = client.post("/api/analyze", json={"content": "   "})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Journal content is required"


def test_analyze_rejects_long_content(client):
    response = client.post("/api/analyze", json={"content": "x" * 5001})
    assert response.status_code == 400
    assert "5000 characters" in response.get_json()["error"]


def test_analyze_new_session(client, memory_store, detector, responder):
    response = client.post("/api/analyze", json={"content": ENTRY})
    assert response.status_code == 200

    body = response.get_json()
    assert re.fullmatch(r"session_\d+_[a-z0-9]{9}", body["sessionId"])
    assert response.headers["X-Session-ID"] == body["sessionId"]
    assert body["id"] == "entry1"
    assert body["riskLevel"] == "low"
    assert body["emotionalState"] == "highly anxious"
    assert body["trends"] is None
    assert body["suggestions"][:2] == ["Take a short walk", "Write down one small win"]
    assert len(body["suggestions"]) == 5

    stored = memory_store.entries[0]
    assert stored["emotions"] == ["anxiety", "sadness"]
    assert stored["aiResponse"] == "It sounds like this week has been a lot to carry."
    assert stored["usedFallback"] is False
    assert memory_store.sessions[body["sessionId"]]["totalEntries"] == 1
    assert responder.calls[0]["previous"] is None
    assert responder.calls[0]["emotions"] == ["anxiety", "sadness"]


def test_analyze_follow_up_uses_previous_entry(client, memory_store, responder):
    first = client.post("/api/analyze", json={"content": ENTRY}).get_json()
    second = client.post("/api/analyze", json={
        "content": "Talked to my TA today and I feel a bit calmer about the exam.",
        "sessionId": first["sessionId"],
    })

    body = second.get_json()
    assert body["sessionId"] == first["sessionId"]
    assert len(body["trends"]) == 2
    assert responder.calls[1]["previous"]["content"] == ENTRY
    assert memory_store.sessions[first["sessionId"]]["totalEntries"] == 2


def test_analyze_rejects_query_document_as_session_id(client, memory_store, responder):
    memory_store.entries.append(make_entry(sessionId="session_1700000000000_victim123",
                                           content="Private entry from someone else"))

    response = client.post("/api/analyze", json={"content": ENTRY, "sessionId": {"$ne": None}})

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid session ID"}
    assert responder.calls == []
    assert len(memory_store.entries) == 1


@pytest.mark.parametrize("session_id", [["session_1_abc"], 42, "session_1_abc", "../etc"])
def test_analyze_rejects_unissued_session_ids(client, session_id):
    response = client.post("/api/analyze", json={"content": ENTRY, "sessionId": session_id})
    assert response.status_code == 400


def test_analyze_accepts_issued_session_id(client, responder):
    response = client.post("/api/analyze", json={"content": ENTRY, "sessionId": "session_1700000000000_abc123xyz"})
    assert response.status_code == 200
    assert response.get_json()["sessionId"] == "session_1700000000000_abc123xyz"


@pytest.mark.parametrize("path", ["/api/analyze", "/api/submit", "/api/validate"])
def test_non_object_json_body_is_rejected(client, memory_store, path):
    response = client.post(path, json=["I have been anxious all week"])
    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid data format."
    assert memory_store.entries == []


def test_analyze_sanitizes_content(client, memory_store):
    client.post("/api/analyze", json={"content": "  Long   day\t\tat the library   today  "})
    assert memory_store.entries[0]["content"] == "Long day at the library today"


def test_analyze_returns_fallback_when_store_fails(client, memory_store):
    memory_store.fail_entry_writes = True

    response = client.post("/api/analyze", json={"content": ENTRY})

    assert response.status_code == 200
    body = response.get_json()
    assert "error" in body
    assert body["fallback"]["emotionalState"] == "seeking support"
    assert "988" in body["fallback"]["aiResponse"]


def test_get_session_entries(client, memory_store):
    memory_store.entries.append(make_entry(days_ago=1, sessionId="session_1_abc"))
    memory_store.entries.append(make_entry(sessionId="other"))

    response = client.get("/api/analyze?sessionId=session_1_abc&action=entries")

    entries = response.get_json()["entries"]
    assert len(entries) == 1
    assert isinstance(entries[0]["timestamp"], str)


def test_get_session_trends_needs_two_entries(client, memory_store):
    memory_store.entries.append(make_entry())
    body = client.get("/api/analyze?sessionId=session_1_abc&action=trends").get_json()
    assert body == {"trends": [], "message": "More entries needed for trend analysis"}

    memory_store.entries.append(make_entry(days_ago=1))
    body = client.get("/api/analyze?sessionId=session_1_abc&action=trends").get_json()
    assert len(body["trends"]) == 2
    assert body["insights"] == ["More entries needed to identify meaningful trends"]


def test_get_session_data_validation(client):
    assert client.get("/api/analyze?action=entries").status_code == 400
    assert client.get("/api/analyze?sessionId=s&action=delete").status_code == 400


def test_submit_entry(client, memory_store):
    response = client.post("/api/submit", json={"content": ENTRY}, headers={"User-Agent": "pytest-browser"})
    assert response.status_code == 200

    body = response.get_json()
    assert body["success"] is True
    assert body["entryId"] == "entry1"
    assert body["aiResponse"]["source"] == "together"
    assert body["emotionAnalysis"]["primaryEmotion"] == "anxiety"
    assert body["warnings"] == []

    session = memory_store.sessions[body["sessionId"]]
    assert session["userAgent"] == "pytest-browser"
    assert session["totalEntries"] == 1


def test_submit_invalid_content(client, memory_store):
    response = client.post("/api/submit", json={"content": "sad"})
    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert body["sessionId"] == ""
    assert "Please write at least 3 words (currently 1)" in body["details"]
    assert memory_store.entries == []


def test_submit_rejects_spam(client):
    response = client.post("/api/submit", json={"content": "lorem ipsum dolor sit amet"})
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_submit_survives_store_failures(client, memory_store):
    memory_store.fail_entry_writes = True
    memory_store.fail_session_writes = True

    response = client.post("/api/submit", json={"content": ENTRY})

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["entryId"] is None


def test_submit_uses_fallback_when_detector_raises(client, detector):
    def boom(text):
        raise RuntimeError("detector crashed")

    detector.detect_emotions = boom
    body = client.post("/api/submit", json={"content": ENTRY}).get_json()

    assert body["success"] is True
    assert body["emotionAnalysis"]["emotionalState"] == "mixed"
    assert body["emotionAnalysis"]["sentimentScore"] == 0


def test_validate_draft(client):
    body = client.post("/api/validate", json={"content": "hi"}).get_json()
    assert body["isValid"] is False
    assert body["likelySpam"] is True
    assert body["charCountDisplay"]["color"] == "yellow"


def test_recent_sessions_hide_content(client, memory_store):
    memory_store.entries.append(make_entry(days_ago=2, sessionId="a", aiResponse="older"))
    memory_store.entries.append(make_entry(days_ago=1, sessionId="a", aiResponse="newer"))
    memory_store.entries.append(make_entry(sessionId="b", aiResponse="only"))

    body = client.get("/api/sessions/recent?ids=a&ids=b&ids=missing").get_json()

    assert body["count"] == 2
    assert [s["sessionId"] for s in body["sessions"]] == ["a", "b"]
    assert body["sessions"][0]["aiResponse"] == "newer"
    assert all(s["content"] == "[Content Protected]" for s in body["sessions"])


def test_recent_sessions_without_ids(client):
    assert client.get("/api/sessions/recent").get_json() == {"sessions": [], "count": 0}


def test_end_session(client):
    session_id = client.post("/api/submit", json={"content": ENTRY}).get_json()["sessionId"]

    assert client.post(f"/api/sessions/{session_id}/end").status_code == 200
    assert client.post(f"/api/sessions/{session_id}/end").status_code == 404
    assert client.post("/api/sessions/unknown/end").status_code == 404


def test_submit_feedback(client, memory_store):
    response = client.post("/api/feedback", json={
        "sessionId": "session_1_abc",
        "entryId": "entry1",
        "rating": 5,
        "helpful": True,
        "comments": "This felt supportive",
    })

    assert response.status_code == 200
    assert response.get_json()["success"] is True
    saved = memory_store.feedback[0]
    assert saved["rating"] == 5
    assert saved["entryId"] == "entry1"
    assert "timestamp" in saved


def test_submit_feedback_invalid(client, memory_store):
    response = client.post("/api/feedback", json={"sessionId": "s", "rating": 9, "helpful": True})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Rating must be a number between 1 and 5"
    assert memory_store.feedback == []


def test_unknown_route_is_json(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Not Found"}
