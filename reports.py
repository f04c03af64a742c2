"""CSV exports, feedback analysis and the mocked model-training reports."""
from collections import Counter
from datetime import datetime, timezone
import csv
import io
import random

from analytics import as_utc, word_count


FEEDBACK_THEMES = [
    "helpful", "accurate", "supportive", "understanding", "caring",
    "confusing", "unclear", "unhelpful", "generic", "repetitive",
    "privacy", "safe", "comfortable", "trust", "professional",
]

RISK_KEYWORDS = {
    "high": ["crisis", "suicide", "harm", "desperate", "hopeless", "emergency", "danger"],
    "medium": ["stressed", "anxious", "worried", "overwhelmed", "struggling", "difficult"],
    "low": ["okay", "fine", "good", "happy", "content", "positive", "calm"],
}

TRAINED_METRICS = {
    "accuracy": 0.89,
    "precision": 0.87,
    "recall": 0.85,
    "f1Score": 0.86,
    "confusionMatrix": [[92, 6, 2], [5, 91, 4], [8, 4, 88]],
}

EVALUATION_METRICS = {
    "accuracy": 0.88,
    "precision": 0.86,
    "recall": 0.84,
    "f1Score": 0.85,
    "confusionMatrix": [[88, 8, 4], [7, 89, 4], [10, 5, 85]],
}


class EmptyDatasetError(Exception):
    pass


def to_csv(rows) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerows(rows)
    return output.getvalue()


def percent(part, total) -> str:
    if not total:
        return "0.0%"
    return f"{part / total * 100:.1f}%"


def export_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def export_filename(prefix: str, extension="csv") -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"mindmosaic-{prefix}-{stamp}.{extension}"


def entries_csv(entries, kind="analytics") -> str:
    if not entries:
        return ""

    if kind == "dataset":
        rows = [["emotions", "sentiment", "sentiment_score", "risk_level", "word_count", "timestamp"]]
        for e in entries:
            rows.append([
                ";".join(e.get("emotions") or []),
                e.get("sentiment", "neutral"),
                e.get("sentimentScore", 0),
                e.get("riskLevel", "low"),
                word_count(e.get("content")),
                as_utc(e["timestamp"]).isoformat(),
            ])
    else:
        rows = [["id", "timestamp", "emotions", "sentiment", "risk_level", "session_id"]]
        for e in entries:
            rows.append([
                e.get("id", ""),
                as_utc(e["timestamp"]).isoformat(),
                ";".join(e.get("emotions") or []),
                e.get("sentiment", "neutral"),
                e.get("riskLevel", "low"),
                e.get("sessionId", ""),
            ])

    return to_csv(rows)


def date_range_label(start=None, end=None) -> str:
    if start and end:
        return f"{start.strftime('%Y-%m-%d')} to {end.strftime('%Y-%m-%d')}"
    return "All Time"


def analytics_csv(analytics, start=None, end=None) -> str:
    date_range = date_range_label(start, end)
    exported = export_timestamp()
    total = analytics["totalEntries"]
    risk = analytics["riskLevelCounts"]

    rows = [
        ["Metric", "Value", "Date Range", "Export Date"],
        ["Total Entries", total, date_range, exported],
        ["Average Session Length", analytics["averageSessionLength"], date_range, exported],
        ["Average Response Time", f"{analytics['responseTime']}ms", date_range, exported],
        ["Low Risk Count", risk["low"], date_range, exported],
        ["Medium Risk Count", risk["medium"], date_range, exported],
        ["High Risk Count", risk["high"], date_range, exported],
        [],
        ["Emotion", "Count", "Percentage"],
    ]
    for emotion, count in analytics["emotionDistribution"].items():
        rows.append([emotion, count, percent(count, total)])

    rows.append([])
    rows.append(["Date", "Sentiment Score"])
    for trend in analytics["sentimentTrends"]:
        rows.append([trend["date"], trend["sentiment"]])

    return to_csv(rows)


def extract_common_themes(comments):
    theme_counts = [
        {"theme": theme, "count": len([c for c in comments if theme in c])}
        for theme in FEEDBACK_THEMES
    ]
    theme_counts = [t for t in theme_counts if t["count"] > 0]
    theme_counts.sort(key=lambda t: t["count"], reverse=True)
    return theme_counts[:10]


def analyze_feedback(feedback):
    total = len(feedback)
    if total == 0:
        return {
            "totalFeedback": 0,
            "averageRating": 0,
            "helpfulPercentage": 0,
            "commonThemes": [],
            "ratingDistribution": {},
        }

    ratings = [f.get("rating", 0) for f in feedback]
    helpful_count = len([f for f in feedback if f.get("helpful")])
    distribution = {str(i): len([r for r in ratings if r == i]) for i in range(1, 6)}
    comments = [f["comments"].lower() for f in feedback if f.get("comments")]

    return {
        "totalFeedback": total,
        "averageRating": round(sum(ratings) / total, 2),
        "helpfulPercentage": round(helpful_count / total * 100, 1),
        "commonThemes": extract_common_themes(comments),
        "ratingDistribution": distribution,
    }


def feedback_csv(analysis) -> str:
    exported = export_timestamp()
    rows = [
        ["Metric", "Value", "Export Date"],
        ["Total Feedback Entries", analysis["totalFeedback"], exported],
        ["Average Rating", f"{analysis['averageRating']:.2f}", exported],
        ["Helpful Percentage", f"{analysis['helpfulPercentage']:.1f}%", exported],
        [],
        ["Rating", "Count"],
    ]
    for rating, count in analysis["ratingDistribution"].items():
        rows.append([f"{rating} stars", count])

    rows.append([])
    rows.append(["Theme", "Mentions"])
    for theme in analysis["commonThemes"]:
        rows.append([theme["theme"], theme["count"]])

    return to_csv(rows)


def anonymized_csv(rows) -> str:
    if not rows:
        return ""
    table = [["emotions", "sentiment", "risk_level", "timestamp", "word_count"]]
    for row in rows:
        table.append([
            ";".join(row["emotions"]),
            row["sentiment"],
            row["riskLevel"],
            row["timestamp"],
            row["wordCount"],
        ])
    return to_csv(table)


def admin_report(analytics, feedback_analysis) -> str:
    total = analytics["totalEntries"]
    risk = analytics["riskLevelCounts"]

    lines = [
        "MindMosaic Admin Report",
        f"Generated: {export_timestamp()}",
        "",
        "SYSTEM OVERVIEW",
        "================",
        f"Total Journal Entries: {total}",
        f"Average Session Length: {analytics['averageSessionLength']} minutes",
        f"Average Response Time: {analytics['responseTime']}ms",
        "",
        "RISK ASSESSMENT",
        "===============",
        f"Low Risk Entries: {risk['low']} ({percent(risk['low'], total)})",
        f"Medium Risk Entries: {risk['medium']} ({percent(risk['medium'], total)})",
        f"High Risk Entries: {risk['high']} ({percent(risk['high'], total)})",
        "",
        "TOP EMOTIONS",
        "============",
    ]

    top = sorted(analytics["emotionDistribution"].items(), key=lambda kv: kv[1], reverse=True)[:10]
    for index, (emotion, count) in enumerate(top, start=1):
        lines.append(f"{index}. {emotion}: {count} occurrences")

    lines += [
        "",
        "USER FEEDBACK",
        "=============",
        f"Total Feedback: {feedback_analysis['totalFeedback']}",
        f"Average Rating: {feedback_analysis['averageRating']:.2f}/5",
        f"Helpful Percentage: {feedback_analysis['helpfulPercentage']:.1f}%",
        "",
        "RECENT SENTIMENT TRENDS",
        "======================",
    ]
    for trend in analytics["sentimentTrends"][-7:]:
        lines.append(f"{trend['date']}: {trend['sentiment']:.2f}")

    return "\n".join(lines)


def analyze_risk_patterns(entries):
    patterns = {level: {"keywords": [], "frequency": 0} for level in RISK_KEYWORDS}

    for e in entries:
        risk = e.get("riskLevel", "low")
        if risk not in patterns:
            continue
        patterns[risk]["frequency"] += 1
        content = (e.get("content") or "").lower()
        for keyword in RISK_KEYWORDS[risk]:
            if keyword in content and keyword not in patterns[risk]["keywords"]:
                patterns[risk]["keywords"].append(keyword)

    return patterns


def dataset_recommendations(entries, emotion_counts, sentiment_distribution):
    recommendations = []

    if len(entries) < 100:
        recommendations.append(
            f"Consider collecting more data (current: {len(entries)} entries). "
            "Aim for at least 1000 entries for robust model training."
        )
    if sentiment_distribution["negative"] > 60:
        recommendations.append(
            f"High negative sentiment detected ({sentiment_distribution['negative']:.1f}%). "
            "Consider implementing proactive mental health interventions."
        )
    if sentiment_distribution["positive"] < 20:
        recommendations.append(
            f"Low positive sentiment ({sentiment_distribution['positive']:.1f}%). "
            "Focus on positive reinforcement features."
        )

    unique_emotions = len(emotion_counts)
    if unique_emotions < 10:
        recommendations.append(
            f"Limited emotion diversity detected ({unique_emotions} unique emotions). "
            "Consider expanding emotion detection capabilities."
        )

    top_emotions = [emotion for emotion, _ in Counter(emotion_counts).most_common(3)]
    recommendations.append(
        f"Top emotions: {', '.join(top_emotions)}. Consider specialized interventions for these emotional states."
    )
    recommendations.append("Implement regular model retraining schedule (weekly/monthly) to maintain accuracy.")
    recommendations.append("Consider ensemble methods combining multiple emotion detection models for improved accuracy.")

    return recommendations


def mock_metrics(rng=random):
    # placeholder numbers until a real model is trained
    return {
        "accuracy": round(0.85 + rng.random() * 0.1, 3),
        "precision": round(0.82 + rng.random() * 0.1, 3),
        "recall": round(0.78 + rng.random() * 0.1, 3),
        "f1Score": round(0.80 + rng.random() * 0.1, 3),
        "confusionMatrix": [[85, 10, 5], [8, 88, 4], [12, 6, 82]],
    }


def analyze_dataset(entries, rng=random):
    if not entries:
        raise EmptyDatasetError("No data available for analysis")

    dataset_size = len(entries)
    training_size = int(dataset_size * 0.8)

    emotion_counts = dict(Counter(emotion for e in entries for emotion in (e.get("emotions") or [])))

    sentiment_counts = Counter(e.get("sentiment", "neutral") for e in entries)
    sentiment_distribution = {
        label: round(sentiment_counts.get(label, 0) / dataset_size * 100, 1)
        for label in ("positive", "negative", "neutral")
    }

    return {
        "datasetSize": dataset_size,
        "trainingSize": training_size,
        "testSize": dataset_size - training_size,
        "metrics": mock_metrics(rng),
        "emotionPatterns": emotion_counts,
        "sentimentDistribution": sentiment_distribution,
        "riskPatterns": analyze_risk_patterns(entries),
        "recommendations": dataset_recommendations(entries, emotion_counts, sentiment_distribution),
    }


def train_model(entries, rng=random):
    results = analyze_dataset(entries, rng)
    results["metrics"] = dict(TRAINED_METRICS)
    return results


def evaluate_model():
    return dict(EVALUATION_METRICS)
