"""
Credential and task stores backed by MongoDB.

Both stores speak in schema models and string ids. Route handlers receive
them through the get_user_store / get_task_store dependencies, which tests
override with in-memory versions.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from database import create_document, from_document, get_db, to_document
from errors import Conflict
from schemas import RecentTask, Task, User

USERS = "users"
TASKS = "tasks"


def object_id(value: str) -> Optional[ObjectId]:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def task_filter(status: Optional[str] = None, assignee_id: Optional[str] = None) -> dict:
    q = {}
    if status:
        q["status"] = status
    if assignee_id:
        q["assignedTo"] = assignee_id
    return q


class UserStore:
    def __init__(self, db: AsyncDatabase):
        self.db = db
        self.collection = db[USERS]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("email", ASCENDING)], unique=True)

    async def create(self, user: User) -> User:
        try:
            doc = await create_document(USERS, user, db=self.db)
        except DuplicateKeyError:
            raise Conflict("User already exists")
        return User.model_validate(doc)

    async def get(self, user_id: str) -> Optional[User]:
        oid = object_id(user_id)
        if oid is None:
            return None
        doc = from_document(await self.collection.find_one({"_id": oid}))
        return User.model_validate(doc) if doc else None

    async def get_by_email(self, email: str) -> Optional[User]:
        doc = from_document(await self.collection.find_one({"email": email}))
        return User.model_validate(doc) if doc else None

    async def get_many(self, user_ids: Iterable[str]) -> List[User]:
        """Users for the given ids, in the given order; unknown ids are skipped."""
        ids = list(user_ids)
        oids = [oid for oid in (object_id(i) for i in ids) if oid is not None]
        found = {}
        async for doc in self.collection.find({"_id": {"$in": oids}}):
            user = User.model_validate(from_document(doc))
            found[user.id] = user
        return [found[i] for i in ids if i in found]

    async def list(self, role: Optional[str] = None) -> List[User]:
        q = {"role": role} if role else {}
        return [User.model_validate(from_document(doc)) async for doc in self.collection.find(q)]

    async def save(self, user: User) -> Optional[User]:
        user.updated_at = datetime.now(timezone.utc)
        try:
            res = await self.collection.replace_one({"_id": ObjectId(user.id)}, to_document(user))
        except DuplicateKeyError:
            raise Conflict("Email already in use")
        return user if res.matched_count else None

    async def delete(self, user_id: str) -> bool:
        oid = object_id(user_id)
        if oid is None:
            return False
        res = await self.collection.delete_one({"_id": oid})
        return res.deleted_count > 0


class TaskStore:
    def __init__(self, db: AsyncDatabase):
        self.db = db
        self.collection = db[TASKS]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("assignedTo", ASCENDING)])
        await self.collection.create_index([("createdAt", DESCENDING)])

    async def insert(self, task: Task) -> Task:
        return Task.model_validate(await create_document(TASKS, task, db=self.db))

    async def get(self, task_id: str) -> Optional[Task]:
        oid = object_id(task_id)
        if oid is None:
            return None
        doc = from_document(await self.collection.find_one({"_id": oid}))
        return Task.model_validate(doc) if doc else None

    async def find(self, status: Optional[str] = None, assignee_id: Optional[str] = None) -> List[Task]:
        cursor = self.collection.find(task_filter(status, assignee_id)).sort("createdAt", DESCENDING)
        return [Task.model_validate(from_document(doc)) async for doc in cursor]

    async def save(self, task: Task) -> Optional[Task]:
        # whole-document replace: concurrent writers to one task are last-write-wins
        task.updated_at = datetime.now(timezone.utc)
        res = await self.collection.replace_one({"_id": ObjectId(task.id)}, to_document(task))
        return task if res.matched_count else None

    async def delete(self, task_id: str) -> bool:
        oid = object_id(task_id)
        if oid is None:
            return False
        res = await self.collection.delete_one({"_id": oid})
        return res.deleted_count > 0

    async def count(self, status: Optional[str] = None, assignee_id: Optional[str] = None) -> int:
        return await self.collection.count_documents(task_filter(status, assignee_id))

    async def count_overdue(self, now: datetime, assignee_id: Optional[str] = None) -> int:
        q = task_filter(assignee_id=assignee_id)
        q.update({"status": {"$ne": "Completed"}, "dueDate": {"$lt": now}})
        return await self.collection.count_documents(q)

    async def count_by(self, field: str, assignee_id: Optional[str] = None) -> Dict[str, int]:
        pipeline = []
        match = task_filter(assignee_id=assignee_id)
        if match:
            pipeline.append({"$match": match})
        pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
        cursor = await self.collection.aggregate(pipeline)
        return {row["_id"]: row["count"] async for row in cursor}

    async def recent(self, limit: int = 10, assignee_id: Optional[str] = None) -> List[RecentTask]:
        projection = {"title": 1, "status": 1, "priority": 1, "dueDate": 1, "createdAt": 1}
        cursor = (
            self.collection.find(task_filter(assignee_id=assignee_id), projection)
            .sort("createdAt", DESCENDING)
            .limit(limit)
        )
        return [RecentTask.model_validate(from_document(doc)) async for doc in cursor]


def get_user_store() -> UserStore:
    return UserStore(get_db())


def get_task_store() -> TaskStore:
    return TaskStore(get_db())
