import logging
import re

from openai import OpenAI


logger = logging.getLogger(__name__)

TOGETHER_BASE_URL = "https://api.together.xyz/v1"
DEFAULT_MODEL = "meta-llama/Llama-2-7b-chat-hf"

SYSTEM_PROMPT = """You are a compassionate AI mental health assistant specifically designed for university students.
Your responses should be:
- Warm, empathetic, and non-judgmental
- Evidence-based and therapeutically sound
- Practical with actionable coping strategies
- Culturally sensitive and inclusive
- Always encourage professional help when appropriate
- Never diagnose or replace professional therapy

Focus on validating emotions, providing coping strategies, and offering hope while maintaining appropriate boundaries."""

FALLBACK_RESPONSE = {
    "response": "I'm here to listen and support you. While I'm experiencing some technical difficulties right now, please know that what you're feeling is valid and you're not alone. If you're in crisis, please reach out to your campus counseling center or call 988 for immediate support.",
    "confidence": 0.5,
    "suggestions": [
        "Take slow, deep breaths",
        "Reach out to a trusted friend or family member",
        "Consider speaking with a counselor",
    ],
    "resources": [
        "Campus Counseling Center",
        "Crisis Text Line: Text HOME to 741741",
        "National Suicide Prevention Lifeline: 988",
    ],
}

BULLET_RE = re.compile(r"^[•\-*]\s")
NUMBERED_RE = re.compile(r"^\d+\.\s")
MARKER_RE = re.compile(r"^(?:[•\-*]|\d+\.)\s*")


def fallback_response():
    return {
        "response": FALLBACK_RESPONSE["response"],
        "confidence": FALLBACK_RESPONSE["confidence"],
        "suggestions": list(FALLBACK_RESPONSE["suggestions"]),
        "resources": list(FALLBACK_RESPONSE["resources"]),
        "source": "fallback",
    }


def create_therapeutic_prompt(content: str, emotions=None) -> str:
    emotion_context = f"The student is experiencing: {', '.join(emotions)}." if emotions else ""

    return f"""A university student has shared the following in their mental health journal:

"{content}"

{emotion_context}

Please provide a compassionate, supportive response that:
1. Validates their feelings without minimizing them
2. Offers 2-3 practical coping strategies they can use immediately
3. Provides hope and perspective while being realistic
4. Suggests when professional support might be beneficial
5. Includes a gentle reminder of their strength and resilience

Format your response in a warm, conversational tone as if speaking directly to the student.""".strip()


def create_follow_up_prompt(previous, content: str, emotions=None) -> str:
    previous_suggestions = previous.get("suggestions") or []
    support = ", ".join(previous_suggestions) if previous_suggestions else "general emotional support"
    emotion_context = f"\nThe student is experiencing: {', '.join(emotions)}." if emotions else ""

    return f"""Previous context: The student previously shared "{previous.get('content', '')}"
and received support about {support}.

Now they're sharing: "{content}"
{emotion_context}
Please provide a follow-up response that acknowledges their previous sharing,
notices any progress or changes, and continues to offer supportive guidance.""".strip()


def parse_response(text: str):
    """Split model output into the main message and bullet suggestions."""
    suggestions = []
    main_response = ""

    for line in text.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        if BULLET_RE.match(trimmed) or NUMBERED_RE.match(trimmed):
            suggestions.append(MARKER_RE.sub("", trimmed, count=1))
        elif len(trimmed) > 10 and not main_response:
            main_response = trimmed

    # no clear structure
    if not main_response:
        main_response = text

    return {"mainResponse": main_response, "suggestions": suggestions}


def calculate_confidence(content: str, emotions, response: str) -> float:
    confidence = 0.7

    if len(content) > 100:
        confidence += 0.1
    if len(content) > 300:
        confidence += 0.1
    if emotions:
        confidence += 0.1
    if len(response) > 200:
        confidence += 0.05
    if "coping" in response or "strategy" in response:
        confidence += 0.05

    return round(min(confidence, 0.95), 2)


def generate_resources(content: str):
    resources = ["Campus Counseling Center", "Student Health Services"]
    text = content.lower()

    if "anxiety" in text or "anxious" in text:
        resources.append("Anxiety and Depression Association of America")
        resources.append("Headspace: Anxiety meditation")

    if "depress" in text or "sad" in text:
        resources.append("National Alliance on Mental Illness (NAMI)")
        resources.append("Mental Health America")

    if "stress" in text or "overwhelm" in text:
        resources.append("Stress management workshops")
        resources.append("Academic success center")

    if "sleep" in text or "insomnia" in text:
        resources.append("Sleep hygiene resources")
        resources.append("Campus wellness center")

    # crisis lines go first
    if any(word in text for word in ("suicide", "harm", "hopeless", "worthless")):
        resources.insert(0, "Crisis Text Line: Text HOME to 741741")
        resources.insert(0, "National Suicide Prevention Lifeline: 988")

    return resources


class Responder:
    """Chat completion client for the supportive journal response."""

    def __init__(self, api_key=None, base_url=TOGETHER_BASE_URL, model=DEFAULT_MODEL, timeout=30):
        self.model = model
        self.client = None
        if api_key:
            self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        else:
            logger.warning("Together API key not found. AI responses will use the fallback message.")

    def complete(self, prompt: str) -> str:
        if self.client is None:
            raise RuntimeError("Together API key not configured")

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=800,
            temperature=0.7,
            top_p=0.9,
        )
        return (response.choices[0].message.content or "").strip()

    def generate_response(self, content: str, emotions=None, previous=None):
        try:
            if previous:
                prompt = create_follow_up_prompt(previous, content, emotions)
            else:
                prompt = create_therapeutic_prompt(content, emotions)

            ai_text = self.complete(prompt)
            if not ai_text:
                raise ValueError("Empty response from model")

            parsed = parse_response(ai_text)
            return {
                "response": parsed["mainResponse"],
                "confidence": calculate_confidence(content, emotions, ai_text),
                "suggestions": parsed["suggestions"],
                "resources": generate_resources(content),
                "source": "together",
            }

        except Exception as e:
            logger.error(f"Error calling Together.ai API: {str(e)}")
            return fallback_response()
