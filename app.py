from flask import Flask, request, jsonify, Response
from flask_cors import CORS
from flask_pymongo import PyMongo
from datetime import datetime, timedelta, timezone
from concurrent.futures import ThreadPoolExecutor
from dotenv import load_dotenv
import os
import logging
import traceback
import random
import re
import string
import time

# analysis helpers
from emotions import EmotionDetector, analyze_emotional_trends
from emotions import DEFAULT_SENTIMENT_MODEL, DEFAULT_EMOTION_MODEL
from responder import Responder, fallback_response, TOGETHER_BASE_URL, DEFAULT_MODEL
from validation import validate_journal_content, validate_feedback, form_state
from validation import is_likely_spam, sanitize_content, MAX_CHARS

# persistence and admin
from store import JournalStore, StoreError
from admin_auth import admin_required, check_credentials, login_admin, logout_admin, current_admin
import analytics
import reports

"""
Endpoints:
POST /api/analyze              // Analyze an entry within a session (follow-up aware)
GET  /api/analyze              // Session entries or trends (?sessionId=&action=)
POST /api/submit               // Journal form submission, new session
POST /api/validate             // Live validation for a draft entry
GET  /api/sessions/recent      // Summaries of up to 3 recent sessions
POST /api/sessions/<id>/end    // Mark a session as ended
POST /api/feedback             // Rate an AI response
POST /api/admin/login          // Admin sign in
POST /api/admin/logout         // Admin sign out
GET  /api/admin/me             // Current admin
GET  /api/admin                // Dashboard data (?action=analytics|trends|entries|daily|export)
GET  /api/admin/metrics        // System metrics
GET  /api/admin/feedback       // Feedback analysis
GET  /api/admin/export/<kind>  // analytics, feedback or anonymized CSV
GET  /api/admin/report         // Plain text admin report
POST /api/admin/training       // Dataset analysis and mocked training
POST /api/admin/cleanup        // Delete entries past retention
"""



# Read environment variables from .env file
load_dotenv()

# Logging setup for debugging
logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO').upper())
logger = logging.getLogger(__name__)



app = Flask(__name__)

class Config:
    DEBUG = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    MONGO_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/mindmosaic')
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1 MB max payload
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')

    REPLICATE_API_TOKEN = os.getenv('REPLICATE_API_TOKEN')
    REPLICATE_SENTIMENT_MODEL = os.getenv('REPLICATE_SENTIMENT_MODEL', DEFAULT_SENTIMENT_MODEL)
    REPLICATE_EMOTION_MODEL = os.getenv('REPLICATE_EMOTION_MODEL', DEFAULT_EMOTION_MODEL)
    TOGETHER_API_KEY = os.getenv('TOGETHER_API_KEY')
    TOGETHER_BASE_URL = os.getenv('TOGETHER_BASE_URL', TOGETHER_BASE_URL)
    TOGETHER_MODEL = os.getenv('TOGETHER_MODEL', DEFAULT_MODEL)
    AI_TIMEOUT = float(os.getenv('AI_TIMEOUT', '30'))

    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@mindmosaic.app')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
    ADMIN_API_TOKEN = os.getenv('ADMIN_API_TOKEN')
    RETENTION_DAYS = int(os.getenv('RETENTION_DAYS', '90'))


app.config.from_object(Config)
CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
     expose_headers=["X-Session-ID"], supports_credentials=True)

# Initialize
mongo = PyMongo(app, tz_aware=True)
store = JournalStore(mongo)
detector = EmotionDetector(
    api_token=app.config['REPLICATE_API_TOKEN'],
    sentiment_model=app.config['REPLICATE_SENTIMENT_MODEL'],
    emotion_model=app.config['REPLICATE_EMOTION_MODEL'],
    timeout=app.config['AI_TIMEOUT'],
)
responder = Responder(
    api_key=app.config['TOGETHER_API_KEY'],
    base_url=app.config['TOGETHER_BASE_URL'],
    model=app.config['TOGETHER_MODEL'],
    timeout=app.config['AI_TIMEOUT'],
)
executor = ThreadPoolExecutor(max_workers=8)
started_at = datetime.now(timezone.utc)

if not app.config['REPLICATE_API_TOKEN']:
    logger.warning("Replicate API token not found. Emotion detection will use keyword fallback.")
if app.config['SECRET_KEY'] == 'change-me':
    logger.warning("SECRET_KEY is not set. Admin sessions are not secure.")
if not app.config['ADMIN_PASSWORD']:
    logger.warning("ADMIN_PASSWORD not set. Admin login is disabled.")


def setup_database():
    return store.ensure_indexes()


# Fallbacks
FALLBACK_ANALYSIS_BODY = {
    "id": "fallback",
    "aiResponse": "I'm experiencing some technical difficulties, but I want you to know that I'm here to listen. Your feelings are valid, and it's brave of you to reach out. If you're in crisis, please contact your campus counseling center or call 988 for immediate support.",
    "emotions": [{"emotion": "neutral", "confidence": 0.5, "intensity": 0.5}],
    "sentiment": "neutral",
    "sentimentScore": 0,
    "riskLevel": "low",
    "suggestions": [
        "Take a few deep breaths",
        "Reach out to someone you trust",
        "Practice self-compassion"
    ],
    "resources": [
        "Campus Counseling Center",
        "Crisis Text Line: Text HOME to 741741",
        "National Suicide Prevention Lifeline: 988"
    ],
    "confidence": 0.5,
    "emotionalState": "seeking support"
}

def default_emotion_analysis():
    return {
        "primaryEmotion": "neutral",
        "emotions": [{"emotion": "neutral", "confidence": 0.5, "intensity": 0.5}],
        "sentiment": "neutral",
        "sentimentScore": 0,
        "emotionalState": "mixed",
        "riskLevel": "low",
        "recommendations": [],
        "source": "fallback"
    }


# Helpers
BASE36 = string.ascii_lowercase + string.digits

def generate_session_id():
    suffix = "".join(random.choices(BASE36, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


SESSION_ID_RE = re.compile(r"session_\d+_[a-z0-9]{9}")

def is_valid_session_id(value):
    return isinstance(value, str) and SESSION_ID_RE.fullmatch(value) is not None


def json_body():
    """Request JSON as a dict. None when the body is JSON but not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None

INVALID_BODY = {"error": "Invalid data format."}


def format_doc(doc):
    item = dict(doc)
    item.pop("_id", None)
    for key, value in item.items():
        if hasattr(value, "isoformat"):
            item[key] = value.isoformat()
    return item


def parse_date_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    return analytics.as_utc(value)


def csv_download(data, filename, mimetype="text/csv"):
    return Response(
        data,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


def build_entry(content, session_id, analysis, ai_response, elapsed_ms):
    return {
        "content": content,
        "timestamp": datetime.now(timezone.utc),
        "emotions": [e["emotion"] for e in analysis["emotions"]],
        "sentiment": analysis["sentiment"],
        "sentimentScore": analysis["sentimentScore"],
        "riskLevel": analysis["riskLevel"],
        "sessionId": session_id,
        "aiResponse": ai_response["response"],
        "suggestions": ai_response["suggestions"],
        "responseTimeMs": round(elapsed_ms, 1),
        "usedFallback": analysis.get("source") == "fallback" or ai_response.get("source") == "fallback",
    }


# Error Handlers
@app.errorhandler(400)
def bad_request(error):
    return jsonify({"error": "Bad Request", "message": str(error)}), 400

@app.errorhandler(404)
def not_found(error):
    return jsonify({"error": "Not Found"}), 404

@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({"error": "Method Not Allowed"}), 405

@app.errorhandler(413)
def payload_too_large(error):
    return jsonify({"error": "Payload Too Large"}), 413

@app.errorhandler(500)
def internal_error(error):
    logger.error(f"Internal server error: {error}")
    return jsonify({"error": "Internal Server Error"}), 500



# Health Check
@app.route('/healthz')
def health():
    try:
        store.ping()
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected",
            "version": "1.0.0"
        })
    except Exception as e:
        return jsonify({
            "status": "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "error": str(e)
        }), 503



# Main analysis endpoint
@app.route("/api/analyze", methods=["POST"])
def analyze_entry():
    data = json_body()
    if data is None:
        return jsonify(INVALID_BODY), 400
    content = data.get("content")

    if not isinstance(content, str) or not content.strip():
        return jsonify({"error": "Journal content is required"}), 400
    if len(content) > MAX_CHARS:
        return jsonify({"error": f"Journal content too long. Please limit to {MAX_CHARS} characters."}), 400

    # only ids this service issued, never a query document
    session_id = data.get("sessionId")
    if session_id is None or session_id == "":
        session_id = generate_session_id()
    elif not is_valid_session_id(session_id):
        return jsonify({"error": "Invalid session ID"}), 400

    try:
        content = sanitize_content(content)
        started = time.perf_counter()

        # previous entries give the follow-up context
        previous_entries = store.get_session_entries(session_id)
        is_follow_up = len(previous_entries) > 0

        analysis = detector.detect_emotions(content)
        emotion_names = [e["emotion"] for e in analysis["emotions"]]
        ai_response = responder.generate_response(
            content,
            emotion_names,
            previous=previous_entries[-1] if is_follow_up else None
        )

        elapsed_ms = (time.perf_counter() - started) * 1000
        entry = build_entry(content, session_id, analysis, ai_response, elapsed_ms)
        entry_id = store.log_journal_entry(entry)

        trends = None
        if is_follow_up:
            trends = analyze_emotional_trends(previous_entries + [entry])["trends"]

        response = jsonify({
            "id": entry_id,
            "sessionId": session_id,
            "aiResponse": ai_response["response"],
            "emotions": analysis["emotions"],
            "sentiment": analysis["sentiment"],
            "sentimentScore": analysis["sentimentScore"],
            "riskLevel": analysis["riskLevel"],
            "suggestions": (ai_response["suggestions"] + analysis["recommendations"])[:5],
            "resources": ai_response["resources"],
            "confidence": ai_response["confidence"],
            "emotionalState": analysis["emotionalState"],
            "trends": trends
        })
        response.headers["X-Session-ID"] = session_id

        logger.info(f"Entry analyzed for session: {session_id}, risk level {analysis['riskLevel']}, follow-up: {is_follow_up}")
        return response, 200

    except Exception as e:
        logger.error(f"Error processing journal entry: {str(e)}")
        logger.error(traceback.format_exc())
        # keep the student supported even when the pipeline fails
        return jsonify({
            "error": "Unable to process your entry right now. Please try again.",
            "fallback": FALLBACK_ANALYSIS_BODY
        }), 200


@app.route("/api/analyze", methods=["GET"])
def get_session_data():
    try:
        session_id = request.args.get("sessionId")
        action = request.args.get("action")

        if not session_id:
            return jsonify({"error": "Session ID is required"}), 400

        if action == "entries":
            entries = store.get_session_entries(session_id)
            return jsonify({"entries": [format_doc(e) for e in entries]}), 200

        if action == "trends":
            entries = store.get_session_entries(session_id)
            if len(entries) < 2:
                return jsonify({
                    "trends": [],
                    "message": "More entries needed for trend analysis"
                }), 200
            return jsonify(analyze_emotional_trends(entries)), 200

        return jsonify({"error": "Invalid action specified"}), 400

    except Exception as e:
        logger.error(f"Error retrieving session data: {str(e)}")
        return jsonify({"error": "Unable to retrieve session data"}), 500


# Journal form submission
@app.route("/api/submit", methods=["POST"])
def submit_journal_entry():
    try:
        data = json_body()
        if data is None:
            return jsonify(dict(INVALID_BODY, success=False, sessionId="")), 400
        content = data.get("content")

        validation = validate_journal_content(content)
        if not validation["isValid"]:
            return jsonify({
                "success": False,
                "sessionId": "",
                "error": "Please share more about what's on your mind (at least 10 characters).",
                "details": validation["errors"]
            }), 400
        if is_likely_spam(content):
            return jsonify({
                "success": False,
                "sessionId": "",
                "error": "That looks like test input. Please share what's on your mind."
            }), 400

        content = sanitize_content(content)
        session_id = generate_session_id()
        started = time.perf_counter()

        # the two external calls run side by side
        emotion_future = executor.submit(detector.detect_emotions, content)
        response_future = executor.submit(responder.generate_response, content, [])

        try:
            analysis = emotion_future.result()
        except Exception as e:
            logger.error(f"Emotion analysis failed: {str(e)}")
            analysis = default_emotion_analysis()

        try:
            ai_response = response_future.result()
        except Exception as e:
            logger.error(f"AI response failed: {str(e)}")
            ai_response = fallback_response()

        elapsed_ms = (time.perf_counter() - started) * 1000

        # session and entry logging must not fail the request
        try:
            store.create_session(
                session_id,
                user_agent=request.headers.get("User-Agent"),
                referrer=request.referrer
            )
        except StoreError as e:
            logger.error(f"Failed to create session: {str(e)}")

        entry_id = None
        try:
            entry_id = store.log_journal_entry(build_entry(content, session_id, analysis, ai_response, elapsed_ms))
        except StoreError as e:
            logger.error(f"Failed to log entry to database: {str(e)}")

        return jsonify({
            "success": True,
            "sessionId": session_id,
            "entryId": entry_id,
            "aiResponse": ai_response,
            "emotionAnalysis": analysis,
            "warnings": validation["warnings"]
        }), 200

    except Exception as e:
        logger.error(f"Form submission error: {str(e)}")
        logger.error(traceback.format_exc())
        return jsonify({
            "success": False,
            "sessionId": "",
            "error": "Something went wrong. Please try again, or contact support if the problem persists."
        }), 500


@app.route("/api/validate", methods=["POST"])
def validate_draft():
    data = json_body()
    if data is None:
        return jsonify(INVALID_BODY), 400
    return jsonify(form_state(data.get("content", ""))), 200


# Sessions
MAX_RECENT_SESSIONS = 3

@app.route("/api/sessions/recent", methods=["GET"])
def get_recent_sessions():
    try:
        session_ids = [s for s in request.args.getlist("ids") if s][:MAX_RECENT_SESSIONS]
        if not session_ids:
            return jsonify({"sessions": [], "count": 0}), 200

        latest = store.get_latest_entries_for_sessions(session_ids)

        sessions = []
        for session_id in session_ids:
            entry = latest.get(session_id)
            if not entry:
                continue
            sessions.append({
                "sessionId": session_id,
                "timestamp": analytics.as_utc(entry["timestamp"]).isoformat(),
                "content": "[Content Protected]",
                "aiResponse": entry.get("aiResponse"),
                "emotions": entry.get("emotions", []),
                "sentiment": entry.get("sentiment"),
                "riskLevel": entry.get("riskLevel")
            })

        return jsonify({"sessions": sessions, "count": len(sessions)}), 200

    except Exception as e:
        logger.error(f"Error fetching recent sessions: {str(e)}")
        return jsonify({"error": "Failed to fetch recent sessions"}), 500


@app.route("/api/sessions/<session_id>/end", methods=["POST"])
def end_session(session_id):
    try:
        if not store.end_session(session_id):
            return jsonify({"error": "Session not found or already ended"}), 404
        return jsonify({"success": True, "sessionId": session_id}), 200
    except Exception as e:
        logger.error(f"Error ending session: {str(e)}")
        return jsonify({"error": "Failed to end session"}), 500


# Feedback
@app.route("/api/feedback", methods=["POST"])
def submit_feedback():
    try:
        data = request.get_json(silent=True) or {}

        errors, feedback = validate_feedback(data)
        if errors:
            return jsonify({"error": errors[0], "details": errors}), 400

        feedback["timestamp"] = datetime.now(timezone.utc)
        store.log_user_feedback(feedback)

        return jsonify({
            "success": True,
            "message": "Thank you for your detailed feedback! This helps us improve MindMosaic's emotional support."
        }), 200

    except Exception as e:
        logger.error(f"Error logging feedback: {str(e)}")
        return jsonify({"error": "Unable to save feedback. Please try again."}), 500


# Admin auth
@app.route("/api/admin/login", methods=["POST"])
def admin_login():
    data = json_body()
    if data is None:
        return jsonify(INVALID_BODY), 400
    if not check_credentials(data.get("email"), data.get("password")):
        logger.warning("Failed admin login attempt")
        return jsonify({"error": "Invalid credentials"}), 401

    login_admin()
    logger.info("Admin logged in")
    return jsonify({"success": True, "user": current_admin()}), 200


@app.route("/api/admin/logout", methods=["POST"])
def admin_logout():
    logout_admin()
    return jsonify({"success": True}), 200


@app.route("/api/admin/me", methods=["GET"])
@admin_required
def admin_me():
    return jsonify({"user": current_admin()}), 200


# Admin dashboard
def load_analytics(start=None, end=None):
    entries = store.get_entries_between(start, end)
    sessions = store.get_sessions(since=start)
    return analytics.build_analytics(entries, sessions)


@app.route("/api/admin", methods=["GET"])
@admin_required
def admin_dashboard():
    try:
        action = request.args.get("action")
        export_type = request.args.get("type", "analytics")

        if action == "analytics":
            return jsonify(load_analytics(parse_date_arg("start"), parse_date_arg("end"))), 200

        if action == "trends":
            days = int(request.args.get("days", 30))
            since = datetime.now(timezone.utc) - timedelta(days=days)
            entries = store.get_entries_between(since, None, session_id=request.args.get("sessionId"))
            return jsonify(analytics.emotion_trends(entries)), 200

        if action == "entries":
            limit = min(int(request.args.get("limit", 500)), 5000)
            entries = store.get_all_journal_entries(limit=limit)
            return jsonify([format_doc(e) for e in entries]), 200

        if action == "daily":
            days = int(request.args.get("days", 30))
            return jsonify(store.get_daily_metrics(days)), 200

        if action == "export":
            entries = store.get_all_journal_entries()
            data = reports.entries_csv(entries, export_type)
            return csv_download(data, f"mindmosaic-{export_type}.csv")

        return jsonify({"error": "Invalid action"}), 400

    except ValueError as e:
        return jsonify({"error": "Invalid parameter", "message": str(e)}), 400
    except Exception as e:
        logger.error(f"Admin API error: {str(e)}")
        logger.error(traceback.format_exc())
        return jsonify({"error": "Internal server error"}), 500


@app.route("/api/admin/metrics", methods=["GET"])
@admin_required
def admin_metrics():
    try:
        now = datetime.now(timezone.utc)
        metrics = analytics.system_metrics(
            store.get_all_journal_entries(),
            store.count_sessions(),
            store.count_sessions(since=analytics.active_window_start(now)),
            started_at,
            now=now
        )
        return jsonify(metrics), 200
    except Exception as e:
        logger.error(f"Error retrieving system metrics: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@app.route("/api/admin/feedback", methods=["GET"])
@admin_required
def admin_feedback():
    try:
        return jsonify(reports.analyze_feedback(store.get_feedback())), 200
    except Exception as e:
        logger.error(f"Error analyzing feedback: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@app.route("/api/admin/export/<kind>", methods=["GET"])
@admin_required
def admin_export(kind):
    try:
        if kind == "analytics":
            start, end = parse_date_arg("start"), parse_date_arg("end")
            data = reports.analytics_csv(load_analytics(start, end), start, end)
            return csv_download(data, reports.export_filename("analytics"))

        if kind == "feedback":
            data = reports.feedback_csv(reports.analyze_feedback(store.get_feedback()))
            return csv_download(data, reports.export_filename("feedback"))

        if kind == "anonymized":
            start = parse_date_arg("start") or datetime.now(timezone.utc) - timedelta(days=30)
            end = parse_date_arg("end") or datetime.now(timezone.utc)
            rows = analytics.anonymized_rows(store.get_entries_between(start, end))
            return csv_download(reports.anonymized_csv(rows), reports.export_filename("anonymized"))

        return jsonify({"error": "Invalid export type"}), 400

    except ValueError as e:
        return jsonify({"error": "Invalid parameter", "message": str(e)}), 400
    except Exception as e:
        logger.error(f"Error exporting {kind} data: {str(e)}")
        logger.error(traceback.format_exc())
        return jsonify({"error": f"Failed to export {kind} data"}), 500


@app.route("/api/admin/report", methods=["GET"])
@admin_required
def admin_report():
    try:
        report = reports.admin_report(load_analytics(), reports.analyze_feedback(store.get_feedback()))
        return csv_download(report, reports.export_filename("admin-report", "txt"), mimetype="text/plain")
    except Exception as e:
        logger.error(f"Error generating admin report: {str(e)}")
        logger.error(traceback.format_exc())
        return jsonify({"error": "Failed to generate admin report"}), 500


@app.route("/api/admin/training", methods=["POST"])
@admin_required
def admin_training():
    try:
        data = json_body()
        if data is None:
            return jsonify(INVALID_BODY), 400
        action = data.get("action")

        if action == "analyze_dataset":
            return jsonify(reports.analyze_dataset(store.get_all_journal_entries())), 200
        if action == "train_model":
            return jsonify(reports.train_model(store.get_all_journal_entries())), 200
        if action == "evaluate_model":
            return jsonify(reports.evaluate_model()), 200

        return jsonify({"error": "Invalid action"}), 400

    except reports.EmptyDatasetError as e:
        return jsonify({"error": str(e)}), 422
    except Exception as e:
        logger.error(f"Training API error: {str(e)}")
        logger.error(traceback.format_exc())
        return jsonify({"error": "Internal server error"}), 500


@app.route("/api/admin/cleanup", methods=["POST"])
@admin_required
def admin_cleanup():
    try:
        data = json_body()
        if data is None:
            return jsonify(INVALID_BODY), 400
        retention_days = int(data.get("retentionDays", app.config['RETENTION_DAYS']))
        if retention_days < 1:
            return jsonify({"error": "retentionDays must be at least 1"}), 400

        deleted = store.cleanup_old_data(retention_days)
        return jsonify({"success": True, "deleted": deleted, "retentionDays": retention_days}), 200

    except ValueError:
        return jsonify({"error": "retentionDays must be a number"}), 400
    except Exception as e:
        logger.error(f"Error cleaning up old data: {str(e)}")
        return jsonify({"error": "Failed to clean up old data"}), 500


if __name__ == '__main__':
    setup_database()
    app.run(debug=app.config['DEBUG'], port=int(os.getenv('PORT', 5000)))
