"""
Celery application factory.
"""

from celery import Celery

celery_app = Celery("leadflow")
celery_app.config_from_object("celeryconfig")

# Auto-discover tasks in these modules
celery_app.autodiscover_tasks([
    "leadflow.tasks.maintenance_tasks",
])
