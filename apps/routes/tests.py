from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.routes.models import Route, RouteAssignment
from apps.shops.models import Shop

User = get_user_model()


class RouteApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_route", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_route", password="staff123", role="field_staff")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def create_route(self, name="North", code="N-1", **extra):
        return self.client.post("/api/v1/routes/", {"name": name, "code": code, **extra}, format="json")

    def test_create_route_stores_normalized_keys(self):
        self.auth_as("admin_route", "admin123")
        response = self.create_route(name="  North Loop ", code=" NL-1 ", description="Morning run")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["name"], "North Loop")
        self.assertEqual(response.data["name_lower"], "north loop")
        self.assertEqual(response.data["code_lower"], "nl-1")

    def test_name_and_code_are_unique_ignoring_case_and_whitespace(self):
        self.auth_as("admin_route", "admin123")
        self.assertEqual(self.create_route().status_code, 201)

        same_name = self.create_route(name="north ", code="N-2")
        self.assertEqual(same_name.status_code, 400)
        self.assertEqual(same_name.data["code"], "duplicate")

        same_code = self.create_route(name="South", code="n-1")
        self.assertEqual(same_code.status_code, 400)
        self.assertEqual(same_code.data["code"], "duplicate")

    def test_uniqueness_check_covers_rows_without_shadow_column(self):
        legacy = Route.objects.create(name="Harbour", code="HB")
        Route.objects.filter(pk=legacy.pk).update(name_lower="", code_lower="")
        self.auth_as("admin_route", "admin123")

        response = self.create_route(name="HARBOUR", code="X")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "duplicate")

    def test_update_rechecks_uniqueness_but_ignores_itself(self):
        self.auth_as("admin_route", "admin123")
        north = self.create_route().data["id"]
        self.create_route(name="South", code="S-1")

        same = self.client.patch(f"/api/v1/routes/{north}/", {"name": "NORTH", "description": "x"}, format="json")
        self.assertEqual(same.status_code, 200)
        self.assertEqual(same.data["name"], "NORTH")

        clash = self.client.patch(f"/api/v1/routes/{north}/", {"code": "s-1"}, format="json")
        self.assertEqual(clash.status_code, 400)
        self.assertEqual(clash.data["code"], "duplicate")

    def test_soft_deleted_route_frees_its_name(self):
        self.auth_as("admin_route", "admin123")
        route_id = self.create_route().data["id"]

        self.assertEqual(self.client.delete(f"/api/v1/routes/{route_id}/").status_code, 204)
        self.assertIsNotNone(Route.objects.get(id=route_id).deleted_at)
        self.assertEqual(self.client.get("/api/v1/routes/").data["count"], 0)
        self.assertEqual(self.client.get("/api/v1/routes/?include_deleted=true").data["count"], 1)
        self.assertEqual(self.create_route().status_code, 201)

    def test_route_detail_lists_its_live_shops(self):
        route = Route.objects.create(name="East", code="E")
        Shop.objects.create(name="Alpha", address="a", zone="East", route=route)
        Shop.objects.create(name="Gone", address="b", zone="East", route=route, deleted_at=timezone.now())
        self.auth_as("staff_route", "staff123")

        response = self.client.get(f"/api/v1/routes/{route.id}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([shop["name"] for shop in response.data["shops"]], ["Alpha"])

    def test_field_staff_cannot_manage_routes(self):
        self.auth_as("staff_route", "staff123")
        self.assertEqual(self.client.get("/api/v1/routes/").status_code, 200)
        self.assertEqual(self.create_route().status_code, 403)


class RouteAssignmentApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_asg", password="admin123", role="admin")
        self.staff = User.objects.create_user(username="staff_asg", password="staff123", role="field_staff")
        self.other_staff = User.objects.create_user(username="other_asg", password="other123", role="field_staff")
        self.north = Route.objects.create(name="North", code="N")
        self.south = Route.objects.create(name="South", code="S")
        self.today = timezone.localdate().isoformat()

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def assign(self, employee, route, date=None):
        return self.client.post(
            "/api/v1/route-assignments/",
            {"employee": employee.id, "route": str(route.id), "date": date or self.today},
            format="json",
        )

    def test_one_active_assignment_per_employee_and_day(self):
        self.auth_as("admin_asg", "admin123")
        first = self.assign(self.staff, self.north)
        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.data["status"], "active")
        self.assertEqual(first.data["assigned_by"], self.admin.id)

        second = self.assign(self.staff, self.south)
        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.data["code"], "duplicate")

        other_day = self.assign(self.staff, self.south, date="2030-01-02")
        self.assertEqual(other_day.status_code, 201)

    def test_cancelled_assignment_allows_a_new_one(self):
        self.auth_as("admin_asg", "admin123")
        assignment_id = self.assign(self.staff, self.north).data["id"]

        cancelled = self.client.post(f"/api/v1/route-assignments/{assignment_id}/cancel/")
        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(cancelled.data["status"], "cancelled")

        self.assertEqual(self.assign(self.staff, self.south).status_code, 201)
        self.assertEqual(RouteAssignment.objects.filter(employee=self.staff).count(), 2)

    def test_cancel_and_complete_are_terminal(self):
        self.auth_as("admin_asg", "admin123")
        assignment_id = self.assign(self.staff, self.north).data["id"]

        completed = self.client.post(f"/api/v1/route-assignments/{assignment_id}/complete/")
        self.assertEqual(completed.data["status"], "completed")

        for action in ("cancel", "complete"):
            response = self.client.post(f"/api/v1/route-assignments/{assignment_id}/{action}/")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid_state")

    def test_deleted_route_cannot_be_assigned(self):
        Route.objects.filter(pk=self.north.pk).update(deleted_at=timezone.now())
        self.auth_as("admin_asg", "admin123")

        response = self.assign(self.staff, self.north)

        self.assertEqual(response.status_code, 400)
        self.assertIn("route", response.data["fields"])

    def test_list_filters(self):
        self.auth_as("admin_asg", "admin123")
        self.assign(self.staff, self.north)
        self.assign(self.other_staff, self.south)
        self.assign(self.other_staff, self.north, date="2030-05-01")

        self.assertEqual(self.client.get(f"/api/v1/route-assignments/?date={self.today}").data["count"], 2)
        self.assertEqual(self.client.get(f"/api/v1/route-assignments/?route={self.north.id}").data["count"], 2)
        by_employee = self.client.get(f"/api/v1/route-assignments/?employee={self.other_staff.id}")
        self.assertEqual(by_employee.data["count"], 2)

    def test_malformed_list_filters_are_rejected(self):
        self.auth_as("admin_asg", "admin123")
        for query in ("date=garbage", "employee=abc", "route=zzz", "status=lost"):
            response = self.client.get(f"/api/v1/route-assignments/?{query}")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.data["code"], "invalid")

        mine = self.client.get("/api/v1/route-assignments/mine/?date=garbage")
        self.assertEqual(mine.status_code, 400)
        self.assertIn("date", mine.data["fields"])

    def test_field_staff_see_their_own_assignment(self):
        self.auth_as("admin_asg", "admin123")
        self.assign(self.staff, self.north)
        self.assign(self.other_staff, self.south)

        self.auth_as("staff_asg", "staff123")
        listing = self.client.get("/api/v1/route-assignments/")
        self.assertEqual(listing.data["count"], 1)

        mine = self.client.get("/api/v1/route-assignments/mine/")
        self.assertEqual(mine.status_code, 200)
        self.assertEqual(mine.data["route_name"], "North")

        self.assertEqual(self.client.get("/api/v1/route-assignments/mine/?date=2030-01-01").status_code, 404)
        self.assertEqual(self.assign(self.staff, self.south, date="2030-01-01").status_code, 403)


class BackfillNormalizedKeysCommandTests(TestCase):
    def test_fills_missing_shadow_columns(self):
        route = Route.objects.create(name="River Side", code="RS-2")
        shop = Shop.objects.create(name="Kamala Stores", address="x", zone="z", code="KS-9")
        untouched = Route.objects.create(name="Hill", code="")
        Route.objects.filter(pk=route.pk).update(name_lower="", code_lower="")
        Shop.objects.filter(pk=shop.pk).update(name_lower="", code_lower="")

        out = StringIO()
        call_command("backfill_normalized_keys", stdout=out)

        route.refresh_from_db()
        shop.refresh_from_db()
        untouched.refresh_from_db()
        self.assertEqual((route.name_lower, route.code_lower), ("river side", "rs-2"))
        self.assertEqual((shop.name_lower, shop.code_lower), ("kamala stores", "ks-9"))
        self.assertEqual(untouched.name_lower, "hill")
        self.assertIn("routes_updated=1 shops_updated=1", out.getvalue())

        out = StringIO()
        call_command("backfill_normalized_keys", stdout=out)
        self.assertIn("routes_updated=0 shops_updated=0", out.getvalue())
