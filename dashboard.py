"""
Dashboard aggregates over the task store.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from schemas import PRIORITIES, STATUSES
from stores import TaskStore

RECENT_LIMIT = 10


def fill_buckets(keys, counts: Dict[str, int]) -> Dict[str, int]:
    return {key: counts.get(key, 0) for key in keys}


class DashboardAggregator:
    def __init__(self, tasks: TaskStore, now=None):
        self.tasks = tasks
        self._now = now or (lambda: datetime.now(timezone.utc))

    async def _summary(self, user_id: Optional[str]) -> Dict[str, int]:
        return {
            "total": await self.tasks.count(assignee_id=user_id),
            "pending": await self.tasks.count(status="Pending", assignee_id=user_id),
            "completed": await self.tasks.count(status="Completed", assignee_id=user_id),
            "overdue": await self.tasks.count_overdue(self._now(), assignee_id=user_id),
        }

    async def _distribution(self, user_id: Optional[str]) -> Dict[str, int]:
        dist = fill_buckets(STATUSES, await self.tasks.count_by("status", assignee_id=user_id))
        dist["All"] = await self.tasks.count(assignee_id=user_id)
        return dist

    async def _priorities(self, user_id: Optional[str]) -> Dict[str, int]:
        return fill_buckets(PRIORITIES, await self.tasks.count_by("priority", assignee_id=user_id))

    async def global_summary(self) -> Dict[str, int]:
        return await self._summary(None)

    async def global_distribution(self) -> Dict[str, int]:
        return await self._distribution(None)

    async def priority_distribution(self) -> Dict[str, int]:
        return await self._priorities(None)

    async def user_summary(self, user_id: str) -> Dict[str, int]:
        return await self._summary(user_id)

    async def user_distribution(self, user_id: str) -> Dict[str, int]:
        return await self._distribution(user_id)

    async def user_priority_distribution(self, user_id: str) -> Dict[str, int]:
        return await self._priorities(user_id)

    async def recent_tasks(self, limit: int = RECENT_LIMIT) -> List[Dict[str, Any]]:
        return [t.model_dump(mode="json", by_alias=True) for t in await self.tasks.recent(limit)]

    async def dashboard(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Full dashboard payload, scoped to user_id's assigned tasks when given.

        recentTasks is not scoped: both dashboards list the latest tasks overall.
        """
        summary = await self._summary(user_id)
        return {
            "statistics": {
                "totalTasks": summary["total"],
                "pendingTasks": summary["pending"],
                "completedTasks": summary["completed"],
                "overdueTasks": summary["overdue"],
            },
            "charts": {
                "taskDistribution": await self._distribution(user_id),
                "taskPriorityLevels": await self._priorities(user_id),
            },
            "recentTasks": await self.recent_tasks(),
        }
