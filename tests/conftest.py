from datetime import datetime, timedelta, timezone
import itertools

import pytest

import app as mindmosaic


ADMIN_EMAIL = "admin@mindmosaic.app"
ADMIN_PASSWORD = "correct-horse"


class InMemoryStore:
    """Same surface as store.JournalStore, backed by lists."""

    def __init__(self):
        self.entries = []
        self.sessions = {}
        self.feedback = []
        self.daily = []
        self.fail_entry_writes = False
        self.fail_session_writes = False
        self._ids = itertools.count(1)

    def ensure_indexes(self):
        return True

    def ping(self):
        return None

    def log_journal_entry(self, entry):
        if self.fail_entry_writes:
            raise mindmosaic.StoreError("Failed to log journal entry")
        doc = dict(entry)
        doc["id"] = f"entry{next(self._ids)}"
        self.entries.append(doc)
        self.increment_session_entries(doc["sessionId"])
        return doc["id"]

    def get_session_entries(self, session_id):
        rows = [dict(e) for e in self.entries if e["sessionId"] == session_id]
        return sorted(rows, key=lambda e: e["timestamp"])

    def get_all_journal_entries(self, limit=0):
        rows = sorted((dict(e) for e in self.entries), key=lambda e: e["timestamp"], reverse=True)
        return rows[:limit] if limit else rows

    def get_entries_between(self, start=None, end=None, session_id=None):
        rows = [
            dict(e) for e in self.entries
            if (start is None or e["timestamp"] >= start)
            and (end is None or e["timestamp"] <= end)
            and (not session_id or e["sessionId"] == session_id)
        ]
        return sorted(rows, key=lambda e: e["timestamp"])

    def get_latest_entries_for_sessions(self, session_ids):
        latest = {}
        for e in self.get_all_journal_entries():
            if e["sessionId"] in session_ids:
                latest.setdefault(e["sessionId"], e)
        return latest

    def cleanup_old_data(self, retention_days=90):
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        before = len(self.entries)
        self.entries = [e for e in self.entries if e["timestamp"] >= cutoff]
        return before - len(self.entries)

    def create_session(self, session_id, start_time=None, user_agent=None, referrer=None):
        if self.fail_session_writes:
            raise mindmosaic.StoreError("Failed to create session")
        self.sessions.setdefault(session_id, {
            "sessionId": session_id,
            "startTime": start_time or datetime.now(timezone.utc),
            "endTime": None,
            "userAgent": user_agent,
            "referrer": referrer,
            "totalEntries": 0,
        })

    def increment_session_entries(self, session_id):
        session = self.sessions.setdefault(session_id, {
            "sessionId": session_id,
            "startTime": datetime.now(timezone.utc),
            "endTime": None,
            "totalEntries": 0,
        })
        session["totalEntries"] += 1

    def end_session(self, session_id, end_time=None):
        session = self.sessions.get(session_id)
        if not session or session["endTime"] is not None:
            return False
        session["endTime"] = end_time or datetime.now(timezone.utc)
        return True

    def get_sessions(self, since=None):
        return [dict(s) for s in self.sessions.values() if since is None or s["startTime"] >= since]

    def count_sessions(self, since=None):
        return len(self.get_sessions(since))

    def log_user_feedback(self, feedback):
        doc = dict(feedback)
        doc["id"] = f"feedback{next(self._ids)}"
        self.feedback.append(doc)
        return doc["id"]

    def get_feedback(self):
        return [dict(f) for f in self.feedback]

    def get_daily_metrics(self, days=30):
        return list(self.daily)


class StubDetector:
    def __init__(self, analysis=None):
        self.calls = []
        self.analysis = analysis or {
            "primaryEmotion": "anxiety",
            "emotions": [
                {"emotion": "anxiety", "confidence": 0.9, "intensity": 1.0},
                {"emotion": "sadness", "confidence": 0.3, "intensity": 0.4},
            ],
            "sentiment": "negative",
            "sentimentScore": -0.4,
            "emotionalState": "highly anxious",
            "riskLevel": "low",
            "recommendations": [
                "Try deep breathing exercises: 4 counts in, 4 counts hold, 4 counts out",
                "Practice grounding: name 5 things you see, 4 you hear, 3 you touch",
                "Consider speaking with a counselor about anxiety management",
            ],
            "source": "replicate",
        }

    def detect_emotions(self, text):
        self.calls.append(text)
        return dict(self.analysis)


class StubResponder:
    def __init__(self):
        self.calls = []

    def generate_response(self, content, emotions=None, previous=None):
        self.calls.append({"content": content, "emotions": emotions, "previous": previous})
        return {
            "response": "It sounds like this week has been a lot to carry.",
            "confidence": 0.8,
            "suggestions": ["Take a short walk", "Write down one small win"],
            "resources": ["Campus Counseling Center", "Student Health Services"],
            "source": "together",
        }


@pytest.fixture
def memory_store(monkeypatch):
    fake = InMemoryStore()
    monkeypatch.setattr(mindmosaic, "store", fake)
    return fake


@pytest.fixture
def detector(monkeypatch):
    stub = StubDetector()
    monkeypatch.setattr(mindmosaic, "detector", stub)
    return stub


@pytest.fixture
def responder(monkeypatch):
    stub = StubResponder()
    monkeypatch.setattr(mindmosaic, "responder", stub)
    return stub


@pytest.fixture
def client(memory_store, detector, responder):
    mindmosaic.app.config.update(
        TESTING=True,
        SECRET_KEY="test-secret",
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        ADMIN_API_TOKEN=None,
    )
    with mindmosaic.app.test_client() as test_client:
        yield test_client


@pytest.fixture
def admin_client(client):
    response = client.post("/api/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


def make_entry(days_ago=0, **overrides):
    entry = {
        "content": "I felt anxious about my exams but talked to a friend",
        "timestamp": datetime.now(timezone.utc) - timedelta(days=days_ago),
        "emotions": ["anxiety"],
        "sentiment": "negative",
        "sentimentScore": -0.3,
        "riskLevel": "low",
        "sessionId": "session_1_abc",
        "responseTimeMs": 1200.0,
        "usedFallback": False,
    }
    entry.update(overrides)
    return entry
