from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import RolePermission, has_capability
from apps.routes.models import AssignmentStatus, Route, RouteAssignment
from apps.routes.serializers import (
    AssignmentQuerySerializer,
    MineQuerySerializer,
    RouteAssignmentSerializer,
    RouteDetailSerializer,
    RouteQuerySerializer,
    RouteSerializer,
)
from apps.routes.services import (
    assign_route,
    cancel_assignment,
    complete_assignment,
    create_route,
    delete_route,
    update_route,
)


class RouteViewSet(viewsets.ModelViewSet):
    queryset = Route.objects.all()
    serializer_class = RouteSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["routes.view"],
        "retrieve": ["routes.view"],
        "create": ["routes.manage"],
        "partial_update": ["routes.manage"],
        "update": ["routes.manage"],
        "destroy": ["routes.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            return queryset
        query_serializer = RouteQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        if not query_serializer.validated_data["include_deleted"]:
            queryset = queryset.filter(deleted_at__isnull=True)
        return queryset

    def get_serializer_class(self):
        if self.action == "retrieve":
            return RouteDetailSerializer
        return RouteSerializer

    def perform_create(self, serializer):
        route = create_route(**serializer.validated_data)
        serializer.instance = route
        record_audit(
            actor=self.request.user,
            action="routes.create",
            entity_type="route",
            entity_id=route.id,
            payload={"name": route.name, "code": route.code},
        )

    def perform_update(self, serializer):
        route = serializer.instance
        before = {"name": route.name, "code": route.code, "description": route.description}
        route = update_route(route, **serializer.validated_data)
        record_audit(
            actor=self.request.user,
            action="routes.update",
            entity_type="route",
            entity_id=route.id,
            payload={"before": before, "after": {"name": route.name, "code": route.code, "description": route.description}},
        )

    def perform_destroy(self, instance):
        delete_route(instance)
        record_audit(
            actor=self.request.user,
            action="routes.delete",
            entity_type="route",
            entity_id=instance.id,
            payload={"name": instance.name},
        )


class RouteAssignmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = RouteAssignment.objects.select_related("employee", "route")
    serializer_class = RouteAssignmentSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["assignments.view"],
        "retrieve": ["assignments.view"],
        "mine": ["assignments.view"],
        "create": ["assignments.manage"],
        "cancel": ["assignments.manage"],
        "complete": ["assignments.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        if not has_capability(self.request.user, "assignments.view.all"):
            queryset = queryset.filter(employee=self.request.user)
        if self.action != "list":
            return queryset
        query_serializer = AssignmentQuerySerializer(data=self.request.query_params)
        query_serializer.is_valid(raise_exception=True)
        params = query_serializer.validated_data
        if params.get("date"):
            queryset = queryset.filter(date=params["date"])
        if params.get("employee"):
            queryset = queryset.filter(employee_id=params["employee"])
        if params.get("route"):
            queryset = queryset.filter(route_id=params["route"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset

    def perform_create(self, serializer):
        assignment = assign_route(assigned_by=self.request.user, **serializer.validated_data)
        serializer.instance = assignment
        record_audit(
            actor=self.request.user,
            action="assignments.create",
            entity_type="route_assignment",
            entity_id=assignment.id,
            payload={
                "employee_id": str(assignment.employee_id),
                "route_id": str(assignment.route_id),
                "date": str(assignment.date),
            },
        )

    @action(detail=False, methods=["get"])
    def mine(self, request):
        query_serializer = MineQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)
        date = query_serializer.validated_data["date"]
        assignment = (
            RouteAssignment.objects.select_related("employee", "route")
            .filter(employee=request.user, date=date, status=AssignmentStatus.ACTIVE)
            .first()
        )
        if assignment is None:
            raise NotFound("No active assignment for this date.")
        return Response(self.get_serializer(assignment).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        assignment = cancel_assignment(self.get_object())
        record_audit(
            actor=request.user,
            action="assignments.cancel",
            entity_type="route_assignment",
            entity_id=assignment.id,
        )
        return Response(self.get_serializer(assignment).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        assignment = complete_assignment(self.get_object())
        record_audit(
            actor=request.user,
            action="assignments.complete",
            entity_type="route_assignment",
            entity_id=assignment.id,
        )
        return Response(self.get_serializer(assignment).data, status=status.HTTP_200_OK)
