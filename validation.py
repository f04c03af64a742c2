import re


MIN_CHARS = 10
MAX_CHARS = 5000
MIN_WORDS = 3
IDEAL_MIN_CHARS = 50
MAX_COMMENT_CHARS = 2000

CONCERNING_PATTERNS = [
    re.compile(r"\b(suicide|kill myself|end it all|want to die)\b", re.IGNORECASE),
    re.compile(r"\b(hurt myself|self harm|cutting)\b", re.IGNORECASE),
    re.compile(r"\b(hopeless|worthless|useless)\b", re.IGNORECASE),
]

SPAM_PATTERNS = [
    re.compile(r"^(test|testing|hello|hi|hey)$"),
    re.compile(r"^(a+|b+|c+|1+|2+|3+)$"),
    re.compile(r"^(qwerty|asdf|zxcv)$"),
    re.compile(r"^(lorem ipsum)"),
]


def count_words(text: str) -> int:
    return len(text.split())


def validate_journal_content(content):
    errors = []
    warnings = []

    if not isinstance(content, str) or not content.strip():
        errors.append("Please share what's on your mind")
        return {"isValid": False, "errors": errors, "warnings": warnings}

    trimmed = content.strip()
    char_count = len(trimmed)
    word_count = count_words(trimmed)

    if char_count < MIN_CHARS:
        errors.append(f"Please write at least {MIN_CHARS} characters (currently {char_count})")
    if char_count > MAX_CHARS:
        errors.append(f"Please keep your entry under {MAX_CHARS} characters (currently {char_count})")
    if word_count < MIN_WORDS:
        errors.append(f"Please write at least {MIN_WORDS} words (currently {word_count})")

    # hints for better analysis, never blocking
    if MIN_CHARS <= char_count < IDEAL_MIN_CHARS:
        warnings.append("Consider writing a bit more for better AI analysis")

    if any(pattern.search(content) for pattern in CONCERNING_PATTERNS):
        warnings.append("Please consider reaching out to a counselor or crisis helpline")

    return {"isValid": not errors, "errors": errors, "warnings": warnings}


def char_count_display(content: str):
    count = len(content)
    if MIN_CHARS <= count <= MAX_CHARS:
        color = "green"
    elif count < MIN_CHARS:
        color = "yellow"
    else:
        color = "red"
    return {"count": count, "display": f"{count}/{MAX_CHARS}", "color": color}


def form_state(content):
    """Live validation snapshot for a draft entry."""
    content = content if isinstance(content, str) else ""
    validation = validate_journal_content(content)
    return {
        "content": content,
        "isValid": validation["isValid"],
        "errors": validation["errors"],
        "warnings": validation["warnings"],
        "charCount": len(content),
        "wordCount": count_words(content),
        "charCountDisplay": char_count_display(content),
        "likelySpam": is_likely_spam(content),
    }


def is_likely_spam(content: str) -> bool:
    trimmed = content.strip().lower()

    if re.search(r"(.)\1{10,}", trimmed):
        return True

    return any(pattern.search(trimmed) for pattern in SPAM_PATTERNS)


def sanitize_content(content: str) -> str:
    # keep paragraph breaks, collapse everything else
    text = content.strip()
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text


def validate_feedback(data):
    errors = []

    if not isinstance(data, dict):
        errors.append("Invalid data format.")
        return errors, {}

    session_id = data.get("sessionId")
    if not isinstance(session_id, str) or not session_id.strip():
        errors.append("Session ID is required")

    # bool is an int subclass, reject it explicitly
    rating = data.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, (int, float)) or not 1 <= rating <= 5:
        errors.append("Rating must be a number between 1 and 5")

    helpful = data.get("helpful")
    if not isinstance(helpful, bool):
        errors.append("Helpful field must be a boolean")

    comments = data.get("comments") or ""
    if not isinstance(comments, str):
        errors.append("Comments must be text")
        comments = ""
    elif len(comments) > MAX_COMMENT_CHARS:
        errors.append(f"Comments must be under {MAX_COMMENT_CHARS} characters")

    entry_id = data.get("entryId")
    if entry_id is not None and not isinstance(entry_id, str):
        errors.append("entryId must be a string")

    if errors:
        return errors, {}

    return errors, {
        "sessionId": session_id.strip(),
        "entryId": entry_id or None,
        "rating": int(rating) if float(rating).is_integer() else rating,
        "comments": comments.strip(),
        "helpful": helpful,
        "supportive": bool(data.get("supportive", False)),
        "accurate": bool(data.get("accurate", False)),
        "emotionalSupport": str(data.get("emotionalSupport") or "neutral"),
    }
