from app.db.mongo import connect_to_mongo, close_mongo_connection

__all__ = ["connect_to_mongo", "close_mongo_connection"]
