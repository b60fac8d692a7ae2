from rest_framework.routers import DefaultRouter

from apps.routes.views import RouteAssignmentViewSet, RouteViewSet

router = DefaultRouter()
router.register("routes", RouteViewSet, basename="route")
router.register("route-assignments", RouteAssignmentViewSet, basename="route-assignment")

urlpatterns = router.urls
