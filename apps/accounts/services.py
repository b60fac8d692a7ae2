import logging

import requests
from django.conf import settings
from django.db import transaction
from django.db.models import Q

from apps.accounts.models import Employee, EmployeeStatus, normalize_email
from apps.common.exceptions import ConfigurationMissing, Duplicate

logger = logging.getLogger(__name__)


class InvitationError(Exception):
    pass


def email_taken(email, exclude_pk=None):
    email = normalize_email(email)
    # Invited employees sign in with their email as username.
    queryset = Employee.objects.filter(Q(email=email) | Q(username=email))
    if exclude_pk is not None:
        queryset = queryset.exclude(pk=exclude_pk)
    return queryset.exists()


def create_employee(*, name, email, role, phone=""):
    email = normalize_email(email)
    if email_taken(email):
        raise Duplicate("An employee with this email already exists.")
    with transaction.atomic():
        employee = Employee(username=email, name=name.strip(), email=email, phone=phone.strip(), role=role)
        employee.set_unusable_password()
        employee.save()
    return employee


def send_invitation(email):
    secret_key = settings.CLERK_SECRET_KEY
    if not secret_key:
        raise ConfigurationMissing("CLERK_SECRET_KEY is not configured.")

    try:
        response = requests.post(
            f"{settings.CLERK_API_URL}/invitations",
            headers={"Authorization": f"Bearer {secret_key}"},
            json={"email_address": normalize_email(email), "ignore_existing": True},
            timeout=settings.CLERK_API_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        logger.error("Invitation request for %s failed: %s", email, exc)
        raise InvitationError("Failed to send invitation") from exc

    if not response.ok:
        message = "Failed to send invitation"
        try:
            errors = response.json().get("errors") or []
            if errors and errors[0].get("message"):
                message = errors[0]["message"]
        except ValueError:
            pass
        logger.error("Invitation for %s rejected with HTTP %s: %s", email, response.status_code, message)
        raise InvitationError(message)

    invitation_id = response.json().get("id", "")
    logger.info("Invitation sent to %s: %s", email, invitation_id)
    return invitation_id


def create_and_invite_employee(*, name, email, role, phone=""):
    """Create the placeholder employee, then ask the identity provider to invite them.

    The employee row is kept when the invitation fails; the failure is reported in the result
    so the caller can re-send later.
    """
    employee = create_employee(name=name, email=email, role=role, phone=phone)
    try:
        invitation_id = send_invitation(employee.email)
    except (InvitationError, ConfigurationMissing) as exc:
        logger.error("Employee %s created but invitation failed: %s", employee.email, exc)
        return {
            "success": False,
            "employee_id": employee.pk,
            "error": f"Employee created but invitation email failed to send: {exc}",
        }
    return {"success": True, "employee_id": employee.pk, "invitation_id": invitation_id}


def link_external_identity(*, email, external_user_id):
    """Attach an identity-provider account to the placeholder employee with the same email."""
    email = normalize_email(email)
    with transaction.atomic():
        employee = Employee.objects.select_for_update().filter(email=email, deleted_at__isnull=True).first()
        if employee is None:
            logger.warning("Webhook: no placeholder employee found for %s", email)
            return {"success": False, "reason": "no_employee_found"}
        if employee.external_user_id:
            logger.warning("Webhook: employee %s is already linked", email)
            return {"success": False, "reason": "already_linked"}
        if Employee.objects.filter(external_user_id=external_user_id).exists():
            logger.warning("Webhook: identity %s is already linked to another employee", external_user_id)
            return {"success": False, "reason": "identity_in_use"}

        employee.external_user_id = external_user_id
        employee.status = EmployeeStatus.ACTIVE
        employee.save(update_fields=["external_user_id", "status"])

    logger.info("Webhook: linked %s to identity %s", email, external_user_id)
    return {"success": True, "employee_id": employee.pk}
