"""
Root pytest configuration for the Django project.

Settings come from config.test_settings (see pyproject.toml). App-specific
fixtures live in each app's conftest.py.
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.test_settings")
