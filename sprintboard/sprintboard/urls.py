"""
URL configuration for sprintboard project.

The board app is mounted under /api/board/; the OpenAPI schema and the
Swagger UI are served from /api/schema/ and /api/docs/.
"""
# sprintboard/urls.py
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path("api/board/", include("board.urls")),

    # OpenAPI
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
]
