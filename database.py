"""
MongoDB access for the Task Manager Backend.

A single AsyncMongoClient is created lazily and shared by the whole process.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

import config

logger = logging.getLogger(__name__)

_client: Optional[AsyncMongoClient] = None


def get_client() -> AsyncMongoClient:
    global _client
    if _client is None:
        _client = AsyncMongoClient(
            config.DATABASE_URL,
            tz_aware=True,
            serverSelectionTimeoutMS=config.DB_TIMEOUT_MS,
        )
    return _client


def get_db() -> AsyncDatabase:
    return get_client()[config.DATABASE_NAME]


async def connect() -> None:
    """Ping the server once; raises when MongoDB is unreachable."""
    await get_client().admin.command("ping")
    logger.info("MongoDB connected (database=%s)", config.DATABASE_NAME)


async def close() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def to_document(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, exclude={"id"})
    doc = dict(data)
    doc.pop("id", None)
    return doc


def from_document(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc["id"] = str(doc.pop("_id"))
    return doc


async def create_document(collection_name: str, data: Union[BaseModel, dict], db: AsyncDatabase = None) -> dict:
    """Insert a document stamped with createdAt/updatedAt and return it with its string id."""
    doc = to_document(data)
    now = datetime.now(timezone.utc)
    doc["createdAt"] = now
    doc["updatedAt"] = now
    result = await (db if db is not None else get_db())[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return from_document(doc)
