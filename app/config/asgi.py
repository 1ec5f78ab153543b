"""
ASGI entry point for the payout platform.

An ASGI server can serve the HTTP API through this callable. The payout endpoints
are synchronous; Django runs them in its thread pool under ASGI.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
