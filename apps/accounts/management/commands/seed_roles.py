from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from apps.accounts.models import Employee, EmployeeRole
from apps.common.permissions import ROLE_CAPABILITIES


class Command(BaseCommand):
    help = "Create one auth group per employee role, optionally placing employees in the group of their role"

    def add_arguments(self, parser):
        parser.add_argument(
            "--sync-employees",
            action="store_true",
            help="Add every non-deleted employee to the group matching its role field.",
        )

    def handle(self, *args, **options):
        groups = {}
        for role in EmployeeRole.values:
            group, created = Group.objects.get_or_create(name=role)
            groups[role] = group
            state = "created" if created else "exists"
            capabilities = len(ROLE_CAPABILITIES.get(role, ()))
            self.stdout.write(self.style.SUCCESS(f"{group.name}: {state} ({capabilities} capabilities)"))

        if not options["sync_employees"]:
            return

        synced = 0
        for employee in Employee.objects.filter(deleted_at__isnull=True):
            role_groups = employee.groups.filter(name__in=EmployeeRole.values)
            if list(role_groups.values_list("name", flat=True)) == [employee.role]:
                continue
            employee.groups.remove(*role_groups)
            employee.groups.add(groups[employee.role])
            synced += 1
        self.stdout.write(self.style.SUCCESS(f"Employees synced: {synced}"))
