"""
Task lifecycle: status transitions, checklist-driven progress and
assignment validation.

The progress and status rules live in plain functions (compute_progress,
status_for_progress, apply_checklist, derive_checklist_and_status) so they
can be used and tested without a store. TaskLifecycle applies them to
stored tasks.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from errors import NotFound, ValidationError
from schemas import (
    STATUSES,
    Checklist,
    CurrentUser,
    Task,
    TaskCreate,
    TaskUpdate,
    TodoItem,
    User,
    coerce,
    coerce_checklist,
)
from access import authorize_assignee_or_admin
from stores import TaskStore, UserStore

logger = logging.getLogger(__name__)


def compute_progress(checklist: Sequence[TodoItem]) -> int:
    """Percentage of completed items, rounded half up; 0 for an empty checklist."""
    total = len(checklist)
    if total == 0:
        return 0
    done = sum(1 for item in checklist if item.completed)
    return (200 * done + total) // (2 * total)


def status_for_progress(progress: int) -> str:
    if progress >= 100:
        return "Completed"
    if progress > 0:
        return "InProgress"
    return "Pending"


def apply_checklist(checklist: Sequence[TodoItem]) -> Tuple[Checklist, int, str]:
    progress = compute_progress(checklist)
    return list(checklist), progress, status_for_progress(progress)


def derive_checklist_and_status(
    checklist: Sequence[TodoItem], new_status: str, current_progress: int
) -> Tuple[Checklist, int, str]:
    """
    Outcome of setting a task's status directly.

    Completed marks every item done and forces progress to 100. Any other
    status leaves the checklist and progress as they are.
    """
    if new_status == "Completed":
        return [item.model_copy(update={"completed": True}) for item in checklist], 100, "Completed"
    return list(checklist), current_progress, new_status


def assignee_view(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "profileImageUrl": user.profile_image_url,
    }


class TaskLifecycle:
    def __init__(self, tasks: TaskStore, users: UserStore):
        self.tasks = tasks
        self.users = users

    async def _load(self, task_id: str) -> Task:
        task = await self.tasks.get(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    async def _save(self, task: Task) -> Task:
        saved = await self.tasks.save(task)
        if saved is None:
            raise NotFound("Task not found")
        return saved

    async def _check_assignees(self, user_ids: List[str]) -> None:
        known = {u.id for u in await self.users.get_many(user_ids)}
        missing = [uid for uid in user_ids if uid not in known]
        if missing:
            raise ValidationError(f"assignedTo contains unknown users: {', '.join(missing)}")

    async def populate_many(self, tasks: Iterable[Task]) -> List[Dict[str, Any]]:
        """Task documents with assignedTo ids replaced by assignee display data."""
        tasks = list(tasks)
        ids = list(dict.fromkeys(uid for t in tasks for uid in t.assigned_to))
        users = {u.id: u for u in await self.users.get_many(ids)}
        out = []
        for task in tasks:
            doc = task.model_dump(mode="json", by_alias=True)
            doc["assignedTo"] = [assignee_view(users[uid]) for uid in task.assigned_to if uid in users]
            out.append(doc)
        return out

    async def populate(self, task: Task) -> Dict[str, Any]:
        return (await self.populate_many([task]))[0]

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        return await self.populate(await self._load(task_id))

    async def list_tasks(self, identity: CurrentUser, status: Optional[str] = None) -> Dict[str, Any]:
        """Admins see every task, members only the ones assigned to them."""
        if status and status not in STATUSES:
            raise ValidationError(f"Unknown status: {status}")
        scope = None if identity.role == "admin" else identity.id
        tasks = await self.tasks.find(status=status, assignee_id=scope)
        docs = await self.populate_many(tasks)
        for task, doc in zip(tasks, docs):
            doc["completedTodoCount"] = task.completed_count
        summary = {
            "all": await self.tasks.count(assignee_id=scope),
            "pendingTasks": await self.tasks.count(status="Pending", assignee_id=scope),
            "inProgressTasks": await self.tasks.count(status="InProgress", assignee_id=scope),
            "completedTasks": await self.tasks.count(status="Completed", assignee_id=scope),
        }
        return {"tasks": docs, "statusSummary": summary}

    async def create_task(self, creator_id: str, fields) -> Task:
        fields = coerce(TaskCreate, fields)
        await self._check_assignees(fields.assigned_to)
        checklist, progress, status = apply_checklist(fields.todo_checklist)
        task = Task(
            title=fields.title,
            description=fields.description,
            priority=fields.priority,
            due_date=fields.due_date,
            assigned_to=fields.assigned_to,
            created_by=creator_id,
            attachments=fields.attachments,
            todo_checklist=checklist,
            progress=progress,
            status=status,
        )
        task = await self.tasks.insert(task)
        logger.info("Task %s created by %s (assignees=%s)", task.id, creator_id, task.assigned_to)
        return task

    async def update_task_fields(self, task_id: str, patch) -> Task:
        patch = coerce(TaskUpdate, patch)
        task = await self._load(task_id)
        changes = patch.provided()
        if "assigned_to" in changes:
            await self._check_assignees(changes["assigned_to"])
        for name, value in changes.items():
            setattr(task, name, value)
        task = await self._save(task)
        logger.info("Task %s updated (%s)", task_id, ", ".join(sorted(changes)) or "no changes")
        return task

    async def set_status(self, task_id: str, identity: CurrentUser, new_status: str) -> Task:
        task = await self._load(task_id)
        authorize_assignee_or_admin(identity, task)
        if new_status not in STATUSES:
            raise ValidationError(f"Unknown status: {new_status}")
        previous = task.status
        task.todo_checklist, task.progress, task.status = derive_checklist_and_status(
            task.todo_checklist, new_status, task.progress
        )
        task = await self._save(task)
        logger.info("Task %s status %s -> %s by %s", task_id, previous, task.status, identity.id)
        return task

    async def update_checklist(self, task_id: str, identity: CurrentUser, new_checklist: Any) -> Dict[str, Any]:
        task = await self._load(task_id)
        authorize_assignee_or_admin(identity, task)
        checklist = coerce_checklist(new_checklist)
        task.todo_checklist, task.progress, task.status = apply_checklist(checklist)
        task = await self._save(task)
        logger.info("Task %s checklist updated by %s: progress=%d status=%s", task_id, identity.id, task.progress, task.status)
        return await self.populate(task)

    async def delete_task(self, task_id: str) -> None:
        if not await self.tasks.delete(task_id):
            raise NotFound("Task not found")
        logger.info("Task %s deleted", task_id)
