# Load the Celery app when Django starts so shared_task binds to it
# and payouts.tasks is discovered.
from config.celery import app as celery_app

__all__ = ("celery_app",)
