"""
URL configuration for the backend.

The API is mounted at the root: the load balancer health check and the
diagnostic routes live at `/health`, `/secret` and so on.
"""

from django.urls import path

from .api import api

urlpatterns = [
    path("", api.urls),
]
