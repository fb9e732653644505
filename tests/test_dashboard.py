# tests/test_dashboard.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from dashboard import DashboardAggregator

from .conftest import make_task

NOW = datetime.now(timezone.utc)


@pytest.fixture()
def aggregator(task_store) -> DashboardAggregator:
    return DashboardAggregator(task_store, now=lambda: NOW)


@pytest.mark.asyncio
async def test_overdue_counts_only_unfinished_tasks(aggregator, task_store, member) -> None:
    yesterday = NOW - timedelta(days=1)
    task_store.seed(make_task(member, title="late", due_date=yesterday, status="Pending"))
    task_store.seed(make_task(member, title="late but done", due_date=yesterday, status="Completed"))
    task_store.seed(make_task(member, title="on time", due_date=NOW + timedelta(days=1)))

    summary = await aggregator.global_summary()

    assert summary == {"total": 3, "pending": 2, "completed": 1, "overdue": 1}


@pytest.mark.asyncio
async def test_distributions_fill_missing_buckets(aggregator, task_store, member) -> None:
    task_store.seed(make_task(member, priority="High"))
    task_store.seed(make_task(member, priority="High", status="InProgress"))

    assert await aggregator.global_distribution() == {"Pending": 1, "InProgress": 1, "Completed": 0, "All": 2}
    assert await aggregator.priority_distribution() == {"Low": 0, "Medium": 0, "High": 2}


@pytest.mark.asyncio
async def test_distribution_sums_to_total(aggregator, task_store, member, outsider) -> None:
    for status, priority in [
        ("Pending", "Low"),
        ("Pending", "High"),
        ("InProgress", "Medium"),
        ("Completed", "Medium"),
        ("Completed", "Low"),
    ]:
        task_store.seed(make_task(member, outsider, status=status, priority=priority))

    dist = await aggregator.global_distribution()
    priorities = await aggregator.priority_distribution()

    assert dist["Pending"] + dist["InProgress"] + dist["Completed"] == dist["All"] == 5
    assert sum(priorities.values()) == 5


@pytest.mark.asyncio
async def test_user_scope_counts_only_assigned_tasks(aggregator, task_store, member, outsider) -> None:
    task_store.seed(make_task(member, status="Completed", priority="Low"))
    task_store.seed(make_task(member, outsider, due_date=NOW - timedelta(hours=1)))
    task_store.seed(make_task(outsider, status="InProgress"))

    assert await aggregator.user_summary(member.id) == {"total": 2, "pending": 1, "completed": 1, "overdue": 1}
    assert await aggregator.user_distribution(member.id) == {"Pending": 1, "InProgress": 0, "Completed": 1, "All": 2}
    assert await aggregator.user_priority_distribution(member.id) == {"Low": 1, "Medium": 1, "High": 0}


@pytest.mark.asyncio
async def test_recent_tasks_newest_first_and_limited(aggregator, task_store, member) -> None:
    for i in range(12):
        task_store.seed(make_task(member, title=f"task {i}"))

    recent = await aggregator.recent_tasks()

    assert len(recent) == 10
    assert recent[0]["title"] == "task 11"
    assert recent[-1]["title"] == "task 2"
    assert set(recent[0]) == {"id", "title", "status", "priority", "dueDate", "createdAt"}


@pytest.mark.asyncio
async def test_user_dashboard_lists_recent_tasks_from_everyone(aggregator, task_store, member, outsider) -> None:
    task_store.seed(make_task(member, title="mine"))
    task_store.seed(make_task(outsider, title="not mine"))

    data = await aggregator.dashboard(member.id)

    assert data["statistics"] == {"totalTasks": 1, "pendingTasks": 1, "completedTasks": 0, "overdueTasks": 0}
    assert data["charts"]["taskDistribution"]["All"] == 1
    assert [t["title"] for t in data["recentTasks"]] == ["not mine", "mine"]
