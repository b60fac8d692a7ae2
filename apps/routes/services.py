from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.exceptions import Duplicate, InvalidState
from apps.common.text import find_by_normalized_key
from apps.routes.models import AssignmentStatus, Route, RouteAssignment


def ensure_route_unique(*, name=None, code=None, exclude_pk=None):
    candidates = Route.objects.alive()
    if name is not None and find_by_normalized_key(candidates, "name", name, exclude_pk=exclude_pk):
        raise Duplicate(f"A route named '{name.strip()}' already exists.")
    if code and find_by_normalized_key(candidates, "code", code, exclude_pk=exclude_pk):
        raise Duplicate(f"A route with code '{code.strip()}' already exists.")


def create_route(*, name, code="", description=""):
    ensure_route_unique(name=name, code=code)
    return Route.objects.create(name=name, code=code, description=description)


def update_route(route, **changes):
    ensure_route_unique(name=changes.get("name"), code=changes.get("code"), exclude_pk=route.pk)
    for field, value in changes.items():
        setattr(route, field, value)
    route.save()
    return route


def delete_route(route):
    if route.deleted_at is None:
        route.deleted_at = timezone.now()
        route.save(update_fields=["deleted_at", "updated_at"])
    return route


def assign_route(*, employee, route, date, assigned_by=None):
    if route.deleted_at is not None:
        raise InvalidState("Cannot assign a deleted route.")
    if RouteAssignment.objects.filter(employee=employee, date=date, status=AssignmentStatus.ACTIVE).exists():
        raise Duplicate("Employee already has an active assignment for this date.")
    try:
        with transaction.atomic():
            return RouteAssignment.objects.create(employee=employee, route=route, date=date, assigned_by=assigned_by)
    except IntegrityError as exc:
        raise Duplicate("Employee already has an active assignment for this date.") from exc


def _close_assignment(assignment, new_status):
    with transaction.atomic():
        locked = RouteAssignment.objects.select_for_update().get(pk=assignment.pk)
        if locked.status != AssignmentStatus.ACTIVE:
            raise InvalidState(f"Assignment is already {locked.status}.")
        locked.status = new_status
        locked.save(update_fields=["status", "updated_at"])
    return locked


def cancel_assignment(assignment):
    return _close_assignment(assignment, AssignmentStatus.CANCELLED)


def complete_assignment(assignment):
    return _close_assignment(assignment, AssignmentStatus.COMPLETED)
