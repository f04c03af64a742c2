import pytest

from validation import (
    validate_journal_content,
    form_state,
    is_likely_spam,
    sanitize_content,
    validate_feedback,
    char_count_display,
)


def test_empty_content_is_rejected():
    result = validate_journal_content("   ")
    assert result["isValid"] is False
    assert result["errors"] == ["Please share what's on your mind"]


def test_short_content_reports_chars_and_words():
    result = validate_journal_content("so tired")
    assert result["isValid"] is False
    assert "Please write at least 10 characters (currently 8)" in result["errors"]
    assert "Please write at least 3 words (currently 2)" in result["errors"]


def test_too_long_content():
    result = validate_journal_content("word " * 1200)
    assert result["isValid"] is False
    assert any("under 5000 characters" in e for e in result["errors"])


def test_valid_short_entry_gets_length_warning():
    result = validate_journal_content("Today was a long day.")
    assert result["isValid"] is True
    assert result["warnings"] == ["Consider writing a bit more for better AI analysis"]


def test_concerning_content_adds_helpline_warning():
    text = "Lately I feel hopeless about everything and I do not know who to talk to."
    result = validate_journal_content(text)
    assert result["isValid"] is True
    assert "Please consider reaching out to a counselor or crisis helpline" in result["warnings"]


def test_form_state_counts():
    state = form_state("one two three four")
    assert state["charCount"] == 18
    assert state["wordCount"] == 4
    assert state["isValid"] is True
    assert state["charCountDisplay"] == {"count": 18, "display": "18/5000", "color": "green"}


def test_form_state_tolerates_non_string():
    state = form_state(None)
    assert state["isValid"] is False
    assert state["charCount"] == 0


@pytest.mark.parametrize("count,color", [(3, "yellow"), (10, "green"), (5001, "red")])
def test_char_count_colors(count, color):
    assert char_count_display("x" * count)["color"] == color


@pytest.mark.parametrize("text", ["test", "Hello", "aaaa", "asdf", "lorem ipsum dolor", "!!!!!!!!!!!!"])
def test_spam_inputs(text):
    assert is_likely_spam(text) is True


def test_real_entry_is_not_spam():
    assert is_likely_spam("I had a hard time focusing in lectures today") is False


def test_sanitize_collapses_whitespace_but_keeps_paragraphs():
    text = "  first   line\t\there\n\n\n\nsecond    paragraph  "
    assert sanitize_content(text) == "first line here\n\nsecond paragraph"


def test_feedback_valid_payload():
    errors, clean = validate_feedback({
        "sessionId": " session_1_abc ",
        "rating": 4,
        "helpful": True,
        "comments": "Very supportive ",
        "supportive": True,
    })
    assert errors == []
    assert clean["sessionId"] == "session_1_abc"
    assert clean["rating"] == 4
    assert clean["comments"] == "Very supportive"
    assert clean["supportive"] is True
    assert clean["accurate"] is False
    assert clean["emotionalSupport"] == "neutral"
    assert clean["entryId"] is None


@pytest.mark.parametrize("payload,message", [
    ({"rating": 3, "helpful": True}, "Session ID is required"),
    ({"sessionId": "s", "rating": 0, "helpful": True}, "Rating must be a number between 1 and 5"),
    ({"sessionId": "s", "rating": 6, "helpful": True}, "Rating must be a number between 1 and 5"),
    ({"sessionId": "s", "rating": True, "helpful": True}, "Rating must be a number between 1 and 5"),
    ({"sessionId": "s", "rating": "5", "helpful": True}, "Rating must be a number between 1 and 5"),
    ({"sessionId": "s", "rating": 5, "helpful": "yes"}, "Helpful field must be a boolean"),
])
def test_feedback_invalid_payloads(payload, message):
    errors, clean = validate_feedback(payload)
    assert message in errors
    assert clean == {}


def test_feedback_rejects_non_dict():
    errors, clean = validate_feedback(["not", "a", "dict"])
    assert errors == ["Invalid data format."]
