"""
Test settings.

Extends base settings; no external services are reached from tests.
"""

from .base import *  # noqa: F403

DEBUG = False
ALLOWED_HOSTS = ["testserver", "localhost"]

LOG_JSON = False
LOG_LEVEL = "WARNING"
