from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

from django.contrib.auth import get_user_model
from django.db.models import Case, Count, IntegerField, Q, Value, When
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.models import ClientCompany, Task, TenantMembership
from core.pagination import paginate
from notifications.models import Notification
from notifications.services import notify_safely


logger = logging.getLogger(__name__)

User = get_user_model()

PRIORITY_RANK = Case(
    When(priority=Task.Priority.HIGH, then=Value(3)),
    When(priority=Task.Priority.MEDIUM, then=Value(2)),
    When(priority=Task.Priority.LOW, then=Value(1)),
    default=Value(0),
    output_field=IntegerField(),
)

EDITABLE_FIELDS = ["title", "description", "due_date", "status", "priority"]


def _get_task_or_404(tenant, task_id) -> Task:
    task = Task.objects.filter(tenant=tenant, id=task_id).first()
    if task is None:
        raise NotFoundError("Task not found.")
    return task


def _resolve_company(tenant, company_id) -> Optional[ClientCompany]:
    if company_id in (None, ""):
        return None
    company = ClientCompany.objects.filter(tenant=tenant, id=company_id).first()
    if company is None:
        raise NotFoundError("Client company not found.")
    return company


def _resolve_assignee(tenant, user_id):
    if user_id in (None, ""):
        return None
    membership = (
        TenantMembership.objects.select_related("user")
        .filter(tenant=tenant, user_id=user_id, status=TenantMembership.Status.ACTIVE)
        .first()
    )
    if membership is None:
        raise ValidationError("Assignee is not an active member of this tenant.")
    return membership.user


def _overdue_q() -> Q:
    return Q(due_date__lt=timezone.now()) & ~Q(status=Task.Status.COMPLETED)


def list_tasks(
    tenant,
    client_company_id=None,
    assignee_id=None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    overdue: Optional[bool] = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    qs = Task.objects.filter(tenant=tenant).select_related("client_company", "assignee")
    if client_company_id:
        qs = qs.filter(client_company_id=client_company_id)
    if assignee_id:
        qs = qs.filter(assignee_id=assignee_id)
    if status:
        qs = qs.filter(status=status)
    if priority:
        qs = qs.filter(priority=priority)
    if overdue:
        qs = qs.filter(_overdue_q())
    qs = qs.annotate(priority_rank=PRIORITY_RANK).order_by("-priority_rank", "due_date", "-created_at")
    return paginate(qs, page, page_size)


def get_task(tenant, task_id) -> Task:
    return _get_task_or_404(tenant, task_id)


def _notify_assignment(tenant, task: Task) -> None:
    if task.assignee is None:
        return
    notify_safely(
        tenant,
        Notification.Type.SYSTEM,
        "New task assigned",
        f"You have been assigned the task '{task.title}'.",
        user=task.assignee,
        meta={"task_id": task.id},
    )


def _notify_due_date(tenant, task: Task) -> None:
    if task.assignee is None or task.due_date is None or task.status == Task.Status.COMPLETED:
        return
    now = timezone.now()
    if task.due_date < now:
        notify_safely(
            tenant,
            Notification.Type.SYSTEM,
            "Task overdue",
            f"The task '{task.title}' is past its due date.",
            user=task.assignee,
            meta={"task_id": task.id},
        )
    elif task.due_date - now <= timedelta(days=1):
        notify_safely(
            tenant,
            Notification.Type.SYSTEM,
            "Task due soon",
            f"The task '{task.title}' is due within a day.",
            user=task.assignee,
            meta={"task_id": task.id},
        )


def create_task(tenant, user, data: dict[str, Any]) -> Task:
    if not (data.get("title") or "").strip():
        raise ValidationError("title is required.")
    company = _resolve_company(tenant, data.get("client_company_id"))
    assignee = _resolve_assignee(tenant, data.get("assignee_id"))

    task = Task.objects.create(
        tenant=tenant,
        client_company=company,
        assignee=assignee,
        created_by=user,
        title=data["title"],
        description=data.get("description") or "",
        due_date=data.get("due_date"),
        status=data.get("status") or Task.Status.PENDING,
        priority=data.get("priority") or Task.Priority.MEDIUM,
    )
    if task.status == Task.Status.COMPLETED:
        task.completed_at = timezone.now()
        task.save(update_fields=["completed_at"])

    _notify_assignment(tenant, task)
    return task


def update_task(tenant, user, task_id, data: dict[str, Any]) -> Task:
    task = _get_task_or_404(tenant, task_id)
    previous_assignee_id = task.assignee_id
    previous_due_date = task.due_date
    previous_status = task.status

    if "client_company_id" in data:
        task.client_company = _resolve_company(tenant, data["client_company_id"])
    if "assignee_id" in data:
        task.assignee = _resolve_assignee(tenant, data["assignee_id"])
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(task, field, data[field])

    if task.status != previous_status:
        if task.status == Task.Status.COMPLETED:
            task.completed_at = timezone.now()
        elif previous_status == Task.Status.COMPLETED:
            task.completed_at = None
    task.save()

    if task.assignee_id and task.assignee_id != previous_assignee_id:
        _notify_assignment(tenant, task)
    if "due_date" in data and task.due_date != previous_due_date:
        _notify_due_date(tenant, task)
    return task


def delete_task(tenant, task_id) -> None:
    task = _get_task_or_404(tenant, task_id)
    if task.status == Task.Status.COMPLETED:
        raise ValidationError("Completed tasks cannot be deleted.")
    task.delete()


def get_task_statistics(tenant, assignee_id=None) -> dict:
    qs = Task.objects.filter(tenant=tenant)
    if assignee_id:
        qs = qs.filter(assignee_id=assignee_id)

    totals = qs.aggregate(
        total=Count("id"),
        pending=Count("id", filter=Q(status=Task.Status.PENDING)),
        in_progress=Count("id", filter=Q(status=Task.Status.IN_PROGRESS)),
        completed=Count("id", filter=Q(status=Task.Status.COMPLETED)),
        cancelled=Count("id", filter=Q(status=Task.Status.CANCELLED)),
        overdue=Count("id", filter=_overdue_q()),
    )
    by_priority = {priority: 0 for priority in Task.Priority.values}
    for row in qs.values("priority").annotate(count=Count("id")):
        by_priority[row["priority"]] = row["count"]
    totals["by_priority"] = by_priority
    return totals
