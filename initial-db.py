import asyncio
import logging

from proverbs import db
from proverbs.core import config
from proverbs.db import mongodb


async def create_sql_schema():
    await db.create_tables()
    await db.close_session()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    settings = config.get_settings()
    if settings.RATINGS_BACKEND == "mongo":
        mongodb.init_mongoDB(settings)
        mongodb.ensure_rating_indexes(mongodb.get_db().get_collection(mongodb.RATINGS_COLLECTION))
        mongodb.close_mongoDB()
    else:
        db.init_db(settings)
        asyncio.run(create_sql_schema())
