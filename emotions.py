"""Emotion and sentiment detection.

Entries are scored by two hosted models on Replicate. When either call fails
the keyword fallback below takes over, with the local VADER + TextBlob blend
standing in for the hosted sentiment model.
"""
from collections import Counter
import logging

import requests
from nltk.sentiment.vader import SentimentIntensityAnalyzer
from textblob import TextBlob


logger = logging.getLogger(__name__)

REPLICATE_API_URL = "https://api.replicate.com/v1"

DEFAULT_SENTIMENT_MODEL = "daanelson/sentiment-analysis:2f6bcc9d0c1244b5c9e6e9b80b2a3b6c8c7e3b7f8e7e2c3b1e8f9c2d4e6f8a1b3c5"
DEFAULT_EMOTION_MODEL = "replicate/emotion-detection:1f2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7c8d9e0f1a2b3c4"

MAX_EMOTIONS = 5

EMOTION_KEYWORDS = {
    "anxiety": ["anxious", "worried", "nervous", "panic", "stress"],
    "sadness": ["sad", "depressed", "down", "blue", "unhappy"],
    "anger": ["angry", "mad", "frustrated", "annoyed", "irritated"],
    "joy": ["happy", "excited", "good", "great", "wonderful"],
    "fear": ["scared", "afraid", "terrified", "fearful"],
}

HIGH_RISK_KEYWORDS = [
    "suicide", "kill myself", "end it all", "not worth living",
    "hopeless", "worthless", "give up", "can't go on",
]
MEDIUM_RISK_EMOTIONS = ["despair", "hopelessness", "severe_anxiety"]

RECOMMENDATIONS = {
    "anxiety": [
        "Try deep breathing exercises: 4 counts in, 4 counts hold, 4 counts out",
        "Practice grounding: name 5 things you see, 4 you hear, 3 you touch",
        "Consider speaking with a counselor about anxiety management",
    ],
    "sadness": [
        "Reach out to a trusted friend or family member",
        "Engage in gentle physical activity like walking",
        "Consider professional support if these feelings persist",
    ],
    "anger": [
        "Take a few minutes to cool down before responding",
        "Try physical exercise to release tension",
        "Practice expressing feelings constructively",
    ],
    "stress": [
        "Break large tasks into smaller, manageable steps",
        "Prioritize self-care and adequate sleep",
        "Use campus resources like tutoring or counseling",
    ],
    "default": [
        "Continue journaling to track your emotional patterns",
        "Maintain healthy routines for sleep and exercise",
        "Stay connected with supportive people in your life",
    ],
}
RECOMMENDATION_GROUPS = {
    "anxiety": "anxiety", "fear": "anxiety",
    "sadness": "sadness", "depression": "sadness",
    "anger": "anger", "frustration": "anger",
    "stress": "stress", "overwhelm": "stress",
}


class EmotionServiceError(Exception):
    pass


# lexicon is loaded on first use
_vader = None


def local_sentiment_score(text: str):
    """VADER/TextBlob blend in [-1, 1], or None when the lexicon is unavailable."""
    global _vader
    try:
        if _vader is None:
            _vader = SentimentIntensityAnalyzer()
        vader_score = _vader.polarity_scores(text).get("compound", 0.0)
        blob_score = TextBlob(text).sentiment.polarity
    except Exception as e:
        logger.warning(f"Local sentiment scoring unavailable: {str(e)}")
        return None

    return round(0.6 * vader_score + 0.4 * blob_score, 3)


def sentiment_label(score: float) -> str:
    if score > 0.1:
        return "positive"
    if score < -0.1:
        return "negative"
    return "neutral"


def calculate_intensity(confidence: float) -> float:
    if confidence > 0.8:
        return 1.0
    if confidence > 0.6:
        return 0.8
    if confidence > 0.4:
        return 0.6
    if confidence > 0.2:
        return 0.4
    return 0.2


def process_emotion_output(output):
    if not output or not isinstance(output, list):
        return [{"emotion": "neutral", "confidence": 0.5, "intensity": 0.5}]

    emotions = []
    for item in output:
        if not isinstance(item, dict):
            continue
        confidence = float(item.get("score") or item.get("confidence") or 0)
        emotions.append({
            "emotion": item.get("label") or item.get("emotion") or "unknown",
            "confidence": confidence,
            "intensity": calculate_intensity(confidence),
        })

    if not emotions:
        return [{"emotion": "neutral", "confidence": 0.5, "intensity": 0.5}]

    emotions.sort(key=lambda e: e["confidence"], reverse=True)
    return emotions[:MAX_EMOTIONS]


def process_sentiment_output(output):
    if not output:
        return {"label": "neutral", "score": 0.0}

    if isinstance(output, dict):
        score = output.get("score") or output.get("sentiment_score") or 0
    else:
        score = output
    score = float(score)
    return {"label": sentiment_label(score), "score": score}


def determine_emotional_state(emotions, sentiment) -> str:
    primary = emotions[0]["emotion"] if emotions else "neutral"
    intensity = emotions[0]["intensity"] if emotions else 0.5

    if primary in ("anxiety", "fear", "worry") and intensity > 0.7:
        return "highly anxious"
    if primary in ("sadness", "depression", "hopelessness") and intensity > 0.7:
        return "significantly sad"
    if primary in ("anger", "frustration", "irritation") and intensity > 0.7:
        return "quite frustrated"
    if primary in ("joy", "happiness", "excitement") and intensity > 0.6:
        return "feeling positive"
    if sentiment["label"] == "positive" and sentiment["score"] > 0.3:
        return "generally positive"
    if sentiment["label"] == "negative" and sentiment["score"] < -0.3:
        return "struggling emotionally"
    return "emotionally balanced"


def assess_risk_level(text: str, emotions, sentiment) -> str:
    text_lower = text.lower()

    if any(keyword in text_lower for keyword in HIGH_RISK_KEYWORDS):
        return "high"

    high_intensity_negative = any(
        e["emotion"] in MEDIUM_RISK_EMOTIONS and e["intensity"] > 0.8 for e in emotions
    )
    if high_intensity_negative or sentiment["score"] < -0.6:
        return "medium"

    # several overwhelming emotions at once
    if len([e for e in emotions if e["intensity"] > 0.8]) >= 2:
        return "medium"

    return "low"


def emotion_recommendations(emotions):
    primary = emotions[0]["emotion"] if emotions else "neutral"
    group = RECOMMENDATION_GROUPS.get(primary, "default")
    return list(RECOMMENDATIONS[group])


def build_analysis(text: str, emotions, sentiment, source: str):
    return {
        "primaryEmotion": emotions[0]["emotion"] if emotions else "neutral",
        "emotions": emotions,
        "sentiment": sentiment["label"],
        "sentimentScore": sentiment["score"],
        "emotionalState": determine_emotional_state(emotions, sentiment),
        "riskLevel": assess_risk_level(text, emotions, sentiment),
        "recommendations": emotion_recommendations(emotions),
        "source": source,
    }


def keyword_sentiment(text_lower: str):
    if "good" in text_lower or "happy" in text_lower:
        return {"label": "positive", "score": 0.3}
    if "bad" in text_lower or "sad" in text_lower:
        return {"label": "negative", "score": -0.3}
    return {"label": "neutral", "score": 0.0}


def fallback_emotion_analysis(text: str):
    text_lower = text.lower()

    detected = []
    for emotion, keywords in EMOTION_KEYWORDS.items():
        matches = len([k for k in keywords if k in text_lower])
        if matches > 0:
            detected.append({
                "emotion": emotion,
                "confidence": round(min(matches * 0.3, 0.9), 2),
                "intensity": round(min(matches * 0.4, 1.0), 2),
            })

    if not detected:
        detected.append({"emotion": "neutral", "confidence": 0.5, "intensity": 0.5})

    detected.sort(key=lambda e: e["confidence"], reverse=True)

    score = local_sentiment_score(text)
    if score is None:
        sentiment = keyword_sentiment(text_lower)
    else:
        sentiment = {"label": sentiment_label(score), "score": score}

    return build_analysis(text, detected, sentiment, source="fallback")


class EmotionDetector:
    """Thin client for the hosted sentiment and emotion models."""

    def __init__(self, api_token=None, sentiment_model=DEFAULT_SENTIMENT_MODEL,
                 emotion_model=DEFAULT_EMOTION_MODEL, timeout=30):
        self.api_token = api_token
        self.sentiment_model = sentiment_model
        self.emotion_model = emotion_model
        self.timeout = timeout

    def run_model(self, model_ref: str, inputs: dict):
        if not self.api_token:
            raise EmotionServiceError("Replicate API token not configured")

        # "owner/name:version" pins a version, "owner/name" uses the latest
        model, _, version = model_ref.partition(":")
        if version:
            url = f"{REPLICATE_API_URL}/predictions"
            payload = {"version": version, "input": inputs}
        else:
            url = f"{REPLICATE_API_URL}/models/{model}/predictions"
            payload = {"input": inputs}

        response = requests.post(
            url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Prefer": f"wait={min(int(self.timeout), 60)}",
            },
            timeout=self.timeout,
        )
        response.raise_for_status()

        prediction = response.json()
        status = prediction.get("status")
        if status != "succeeded":
            raise EmotionServiceError(f"Prediction {prediction.get('id')} ended with status {status}: {prediction.get('error')}")
        return prediction.get("output")

    def detect_emotions(self, text: str):
        try:
            sentiment_output = self.run_model(self.sentiment_model, {"text": text})
            emotion_output = self.run_model(self.emotion_model, {"text": text, "return_probabilities": True})

            emotions = process_emotion_output(emotion_output)
            sentiment = process_sentiment_output(sentiment_output)
            return build_analysis(text, emotions, sentiment, source="replicate")

        except Exception as e:
            logger.error(f"Error with Replicate emotion detection: {str(e)}")
            return fallback_emotion_analysis(text)


def trend_point(entry):
    timestamp = entry.get("timestamp")
    date = timestamp.isoformat() if hasattr(timestamp, "isoformat") else str(timestamp or "")
    return {
        "date": date[:10],
        "emotions": list(entry.get("emotions") or []),
        "sentiment": float(entry.get("sentimentScore") or 0),
        "riskLevel": entry.get("riskLevel", "low"),
    }


def generate_trend_insights(trends):
    if len(trends) < 3:
        return ["More entries needed to identify meaningful trends"]

    insights = []
    recent = trends[-7:]

    avg_sentiment = sum(t["sentiment"] for t in recent) / len(recent)
    if avg_sentiment > 0.2:
        insights.append("Your overall mood has been trending positive recently")
    elif avg_sentiment < -0.2:
        insights.append("You've been experiencing more challenging emotions lately")

    if any(t["riskLevel"] == "high" for t in recent):
        insights.append("Some recent entries indicate significant distress - consider reaching out for support")

    emotion_freq = Counter(emotion for t in recent for emotion in t["emotions"])
    if emotion_freq:
        emotion, count = emotion_freq.most_common(1)[0]
        if count > len(recent) * 0.4:
            insights.append(f"{emotion} has been a recurring theme in your recent entries")

    return insights


def identify_emotional_patterns(trends):
    if len(trends) < 5:
        return []

    patterns = []
    sentiments = [t["sentiment"] for t in trends]
    half = len(sentiments) // 2
    earlier = sum(sentiments[:half]) / half
    later = sum(sentiments[half:]) / (len(sentiments) - half)
    if later - earlier > 0.2:
        patterns.append("Mood has been recovering over the course of these entries")
    elif earlier - later > 0.2:
        patterns.append("Mood has been declining over the course of these entries")

    if not patterns:
        patterns.append("Pattern analysis requires more data points")
    return patterns


def analyze_emotional_trends(entries):
    """Trends, insights and patterns built from already analyzed entries."""
    try:
        trends = [trend_point(e) for e in entries]
        return {
            "trends": trends,
            "insights": generate_trend_insights(trends),
            "patterns": identify_emotional_patterns(trends),
        }
    except Exception as e:
        logger.error(f"Error analyzing emotional trends: {str(e)}")
        return {
            "trends": [],
            "insights": ["Unable to analyze trends at this time"],
            "patterns": [],
        }
