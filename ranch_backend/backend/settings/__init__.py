# backend/settings/__init__.py
"""
Settings package. Nothing is loaded here; pick one with DJANGO_SETTINGS_MODULE:
- backend.settings.dev   (local development, tests)
- backend.settings.prod  (production)
"""
