from collections import Counter, OrderedDict
from datetime import datetime, timedelta, timezone


RISK_LEVELS = ("low", "medium", "high")


def day_of(timestamp) -> str:
    if hasattr(timestamp, "strftime"):
        return timestamp.strftime("%Y-%m-%d")
    return str(timestamp or "")[:10]


def as_utc(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def word_count(text) -> int:
    return len((text or "").split())


def emotion_distribution(entries):
    counts = Counter(emotion for e in entries for emotion in (e.get("emotions") or []))
    return dict(counts.most_common())


def risk_level_counts(entries):
    counts = {level: 0 for level in RISK_LEVELS}
    for e in entries:
        level = e.get("riskLevel", "low")
        if level in counts:
            counts[level] += 1
    return counts


def sentiment_trends(entries):
    """Average sentiment score per calendar day, oldest first."""
    by_day = OrderedDict()
    for e in sorted(entries, key=lambda e: as_utc(e["timestamp"])):
        by_day.setdefault(day_of(e["timestamp"]), []).append(float(e.get("sentimentScore") or 0))

    return [
        {"date": day, "sentiment": round(sum(scores) / len(scores), 3)}
        for day, scores in by_day.items()
    ]


def emotion_trends(entries):
    by_day = OrderedDict()
    for e in sorted(entries, key=lambda e: as_utc(e["timestamp"])):
        day = by_day.setdefault(day_of(e["timestamp"]), {"emotions": [], "sentiments": []})
        for emotion in e.get("emotions") or []:
            if emotion not in day["emotions"]:
                day["emotions"].append(emotion)
        day["sentiments"].append(float(e.get("sentimentScore") or 0))

    return [
        {
            "date": date,
            "emotions": data["emotions"],
            "sentiment": round(sum(data["sentiments"]) / len(data["sentiments"]), 3),
        }
        for date, data in by_day.items()
    ]


def average_session_length(sessions) -> float:
    """Mean duration in minutes over sessions that have ended."""
    durations = []
    for s in sessions:
        if s.get("endTime") and s.get("startTime"):
            delta = as_utc(s["endTime"]) - as_utc(s["startTime"])
            durations.append(delta.total_seconds() / 60)

    if not durations:
        return 0
    return round(sum(durations) / len(durations), 2)


def average_response_time(entries) -> float:
    times = [float(e["responseTimeMs"]) for e in entries if e.get("responseTimeMs") is not None]
    if not times:
        return 0
    return round(sum(times) / len(times), 1)


def build_analytics(entries, sessions):
    return {
        "totalEntries": len(entries),
        "emotionDistribution": emotion_distribution(entries),
        "sentimentTrends": sentiment_trends(entries),
        "riskLevelCounts": risk_level_counts(entries),
        "averageSessionLength": average_session_length(sessions),
        "responseTime": average_response_time(entries),
    }


def empty_analytics():
    return build_analytics([], [])


def system_metrics(entries, total_sessions, active_sessions, started_at, now=None):
    now = now or datetime.now(timezone.utc)
    fallback_count = len([e for e in entries if e.get("usedFallback")])

    return {
        "uptime": round((now - started_at).total_seconds()),
        "totalSessions": total_sessions,
        "activeUsers": active_sessions,
        "averageResponseTime": average_response_time(entries),
        "errorRate": round(fallback_count / len(entries), 3) if entries else 0,
    }


def active_window_start(now=None, hours=24):
    return (now or datetime.now(timezone.utc)) - timedelta(hours=hours)


def anonymized_rows(entries):
    # content never leaves this function
    return [
        {
            "emotions": list(e.get("emotions") or []),
            "sentiment": float(e.get("sentimentScore") or 0),
            "riskLevel": e.get("riskLevel", "low"),
            "timestamp": as_utc(e["timestamp"]).isoformat(),
            "wordCount": word_count(e.get("content")),
        }
        for e in entries
    ]
