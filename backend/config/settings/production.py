"""
Production settings.

All secrets are read from environment variables (injected via ECS Task Definition).
TLS is terminated at the load balancer, which forwards plain HTTP to port 3000.
"""

from .base import *  # noqa: F403
from .base import settings

DEBUG = False

# The load balancer health check addresses tasks by IP, so Host is not fixed.
# Unless ALLOWED_HOSTS is set in the environment, accept any host.
_configured_hosts = settings.ALLOWED_HOSTS if "ALLOWED_HOSTS" in settings.model_fields_set else ""
ALLOWED_HOSTS = [h.strip() for h in _configured_hosts.split(",") if h.strip()] or ["*"]

# Health checks arrive over plain HTTP; redirecting them would mark targets unhealthy.
SECURE_SSL_REDIRECT = False
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

LOG_JSON = True
