# backend/baybook/tasks/__init__.py
"""
Celery tasks package for the bay booking engine.

Contains the periodic reservation and attendance cutoff sweeps. The worker imports
``baybook.tasks.celery_app:celery_app``.
"""
