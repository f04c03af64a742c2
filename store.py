"""MongoDB persistence for journal entries, sessions, feedback and daily counters."""
from datetime import datetime, timedelta, timezone
import logging

from pymongo.errors import PyMongoError


logger = logging.getLogger(__name__)


class StoreError(Exception):
    pass


def with_id(doc):
    if doc is None:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


class JournalStore:
    """Wraps the Flask-PyMongo handle; collections are resolved per call."""

    def __init__(self, mongo):
        self.mongo = mongo

    @property
    def db(self):
        return self.mongo.db

    def ensure_indexes(self):
        try:
            db = self.db
            db.journal_entries.create_index([("sessionId", 1), ("timestamp", 1)])
            db.journal_entries.create_index([("timestamp", -1)])
            db.journal_entries.create_index([("riskLevel", 1)])
            db.sessions.create_index([("sessionId", 1)], unique=True)
            db.sessions.create_index([("startTime", -1)])
            db.user_feedback.create_index([("sessionId", 1), ("timestamp", -1)])
            db.analytics.create_index([("metricName", 1), ("date", 1)], unique=True)

            logger.info("Database indexes created successfully")
            return True
        except PyMongoError as e:
            logger.error(f"Error setting up database: {str(e)}")
            return False

    def ping(self):
        self.db.command("ping")

    # journal entries

    def log_journal_entry(self, entry) -> str:
        try:
            result = self.db.journal_entries.insert_one(dict(entry))
        except PyMongoError as e:
            logger.error(f"Error logging journal entry: {str(e)}")
            raise StoreError("Failed to log journal entry") from e

        entry_id = str(result.inserted_id)

        # bookkeeping only, the entry itself is saved
        self.increment_session_entries(entry["sessionId"])
        self.update_daily_analytics(entry)

        logger.info(f"Journal entry logged with ID: {entry_id}")
        return entry_id

    def get_session_entries(self, session_id):
        try:
            cursor = self.db.journal_entries.find({"sessionId": session_id}).sort("timestamp", 1)
            return [with_id(doc) for doc in cursor]
        except PyMongoError as e:
            logger.error(f"Error retrieving session entries: {str(e)}")
            return []

    def get_all_journal_entries(self, limit=0):
        cursor = self.db.journal_entries.find({}).sort("timestamp", -1)
        if limit:
            cursor = cursor.limit(limit)
        return [with_id(doc) for doc in cursor]

    def get_entries_between(self, start=None, end=None, session_id=None):
        query = {}
        window = {}
        if start is not None:
            window["$gte"] = start
        if end is not None:
            window["$lte"] = end
        if window:
            query["timestamp"] = window
        if session_id:
            query["sessionId"] = session_id

        cursor = self.db.journal_entries.find(query).sort("timestamp", 1)
        return [with_id(doc) for doc in cursor]

    def get_latest_entries_for_sessions(self, session_ids):
        cursor = self.db.journal_entries.find({"sessionId": {"$in": list(session_ids)}}).sort("timestamp", -1)

        latest = {}
        for doc in cursor:
            latest.setdefault(doc["sessionId"], with_id(doc))
        return latest

    def cleanup_old_data(self, retention_days=90) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        try:
            result = self.db.journal_entries.delete_many({"timestamp": {"$lt": cutoff}})
        except PyMongoError as e:
            logger.error(f"Error cleaning up old data: {str(e)}")
            raise StoreError("Failed to clean up old data") from e

        logger.info(f"Cleaned up {result.deleted_count} entries older than {retention_days} days")
        return result.deleted_count

    # sessions

    def create_session(self, session_id, start_time=None, user_agent=None, referrer=None):
        try:
            self.db.sessions.update_one(
                {"sessionId": session_id},
                {"$setOnInsert": {
                    "startTime": start_time or datetime.now(timezone.utc),
                    "endTime": None,
                    "userAgent": user_agent,
                    "referrer": referrer,
                }},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Error creating session: {str(e)}")
            raise StoreError("Failed to create session") from e

        logger.info(f"Session created with ID: {session_id}")

    def increment_session_entries(self, session_id):
        try:
            self.db.sessions.update_one(
                {"sessionId": session_id},
                {
                    "$inc": {"totalEntries": 1},
                    "$setOnInsert": {"startTime": datetime.now(timezone.utc), "endTime": None},
                },
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Error updating session entry count: {str(e)}")

    def end_session(self, session_id, end_time=None) -> bool:
        result = self.db.sessions.update_one(
            {"sessionId": session_id, "endTime": None},
            {"$set": {"endTime": end_time or datetime.now(timezone.utc)}},
        )
        return result.matched_count > 0

    def get_sessions(self, since=None):
        query = {"startTime": {"$gte": since}} if since is not None else {}
        return [with_id(doc) for doc in self.db.sessions.find(query)]

    def count_sessions(self, since=None) -> int:
        query = {"startTime": {"$gte": since}} if since is not None else {}
        return self.db.sessions.count_documents(query)

    # feedback

    def log_user_feedback(self, feedback) -> str:
        try:
            result = self.db.user_feedback.insert_one(dict(feedback))
        except PyMongoError as e:
            logger.error(f"Error logging user feedback: {str(e)}")
            raise StoreError("Failed to log user feedback") from e

        logger.info("User feedback logged successfully")
        return str(result.inserted_id)

    def get_feedback(self):
        return [with_id(doc) for doc in self.db.user_feedback.find({}).sort("timestamp", -1)]

    # daily counters

    def update_daily_analytics(self, entry):
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        try:
            self.db.analytics.update_one(
                {"metricName": "daily_entries", "date": today},
                {"$inc": {"value": 1}},
                upsert=True,
            )
            self.db.analytics.update_one(
                {"metricName": "daily_sentiment_total", "date": today},
                {"$inc": {"value": float(entry.get("sentimentScore") or 0)}},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Error updating analytics: {str(e)}")

    def get_daily_metrics(self, days=30):
        since = (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%d")
        cursor = self.db.analytics.find({"date": {"$gte": since}}).sort("date", 1)
        return [with_id(doc) for doc in cursor]
