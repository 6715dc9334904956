import logging

from pymongo import ASCENDING, MongoClient

logger = logging.getLogger(__name__)

RATINGS_COLLECTION = "ratings"


class MongoDB:
    def __init__(self):
        self.client = None
        self.db = None

    def connect(self, mongo_uri: str, db_name: str):
        self.client = MongoClient(mongo_uri)
        self.db = self.client[db_name]

    def disconnect(self):
        if self.client:
            self.client.close()
            self.client = None
            self.db = None

    def get_collection(self, collection_name: str):
        if self.db is None:
            raise RuntimeError("Database connection is not initialized")
        return self.db[collection_name]


def ensure_rating_indexes(collection):
    """Create the unique (item_id, session_id) key and the two lookup indexes."""
    collection.create_index(
        [("item_id", ASCENDING), ("session_id", ASCENDING)],
        unique=True,
        name="uq_ratings_item_session",
    )
    collection.create_index([("item_id", ASCENDING)], name="idx_ratings_item_id")
    collection.create_index([("session_id", ASCENDING)], name="idx_ratings_session_id")


# Global MongoDB instance
mongodb = None

def init_mongoDB(settings):
    global mongodb
    if not settings.MONGO_URI:
        raise RuntimeError("MONGO_URI must be set to use the mongo ratings backend")
    mongodb = MongoDB()
    mongodb.connect(settings.MONGO_URI, settings.MONGO_DB_NAME)
    logger.info("Connected to MongoDB database %s", settings.MONGO_DB_NAME)

def close_mongoDB():
    global mongodb
    if mongodb is not None:
        mongodb.disconnect()
        mongodb = None

def get_db():
    if mongodb is None:
        raise RuntimeError("MongoDB is not initialized")
    return mongodb
