from pymongo import MongoClient
from compass_gps.config import get_settings, require
import logging
import threading
import time

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 1.0

_client = None
_client_lock = threading.Lock()


def get_client() -> MongoClient:
    """Process-wide MongoClient, created on first use from MONGO_URI."""
    global _client
    with _client_lock:
        if _client is None:
            # MongoClient connects lazily; reachability is checked by ping_database()
            _client = MongoClient(require("MONGO_URI"), serverSelectionTimeoutMS=5000)
        return _client


def get_collection(name: str):
    """Collection on the current client; resolve again after a reconnect."""
    return get_client()[get_settings().mongo_db_name][name]


def get_modem_gps_collection():
    return get_collection("modem_gps")


def get_api_cache_collection():
    return get_collection("api_cache")


def ping_database():
    """Raise if MongoDB is unreachable."""
    get_client().admin.command("ping")


def reconnect_database():
    """Close the current client and open a new one after a short pause."""
    global _client
    logger.info("🔄 Reconnecting MongoDB client...")
    with _client_lock:
        stale_client, _client = _client, None
    if stale_client is not None:
        try:
            stale_client.close()
        except Exception as e:
            logger.error(f"🔄 MongoDB disconnect failed: {e}")
    time.sleep(RECONNECT_DELAY_SECONDS)
    get_client()
    logger.info("✅ MongoDB client reopened")
