"""
Database and small shared helpers for the porting service.
"""
import logging
from datetime import datetime, timezone

from pymongo import MongoClient

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what MongoDB hands back on reads."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_database(app, db=None):
    """
    Attach a MongoDB database handle to the app.

    A ready database (for example an in-memory one in tests) can be passed in;
    otherwise a MongoClient is created from MONGO_URI.
    """
    if db is None:
        client = MongoClient(app.config['MONGO_URI'])
        db = client[app.config['MONGO_DBNAME']]
        logger.info(f"Connected to MongoDB: {app.config['MONGO_DBNAME']}")
    app.extensions['mongo_db'] = db
    return db


def create_indexes(db):
    """Create the indexes the porting collections rely on"""
    try:
        # Present only while a request is active: at most one active request per number
        db.porting_requests.create_index("active_number", unique=True, sparse=True)
        db.porting_requests.create_index([("current_number", 1), ("created_at", -1)])
        db.porting_requests.create_index([("user_id", 1), ("created_at", -1)])
        db.porting_requests.create_index([("status", 1), ("created_at", 1)])
        db.porting_documents.create_index("porting_request_id")
        db.virtual_numbers.create_index("phone_number", unique=True)
        db.number_configurations.create_index("number_id", unique=True)
        logger.info("Database indexes created successfully")
    except Exception as e:
        logger.warning(f"Index creation warning: {str(e)}")


def parse_pagination(args, default_limit: int, max_limit: int):
    """Read limit/offset query parameters, clamped to sane bounds."""
    limit = args.get('limit', default_limit, type=int)
    offset = args.get('offset', 0, type=int)
    if limit is None or limit < 1:
        limit = default_limit
    limit = min(limit, max_limit)
    offset = max(offset or 0, 0)
    return limit, offset

