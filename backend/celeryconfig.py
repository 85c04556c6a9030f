"""
Celery configuration for leadflow maintenance work.

Loaded by `celery_app.config_from_object("celeryconfig")` in leadflow/tasks/__init__.py.
All broker/result-backend URLs come from environment variables,
defaulting to localhost for local dev.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ═══════════════════════════════════════════════════════════
#  Serialization: JSON only
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

# ═══════════════════════════════════════════════════════════
#  Timezone
# ═══════════════════════════════════════════════════════════

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# Acknowledge after completion so a crashed worker's task is redelivered
task_acks_late = True
task_reject_on_worker_lost = True

worker_prefetch_multiplier = 1

# Backfill walks every entity; re-sync touches one
task_soft_time_limit = 600    # 10 min: raises SoftTimeLimitExceeded
task_time_limit = 660         # 11 min: hard kill

# ═══════════════════════════════════════════════════════════
#  Retry Policy
# ═══════════════════════════════════════════════════════════

task_default_retry_delay = 30
task_max_retries = 3

# ═══════════════════════════════════════════════════════════
#  Result Expiry: auto-clean after 24h
# ═══════════════════════════════════════════════════════════

result_expires = 86400

# ═══════════════════════════════════════════════════════════
#  Worker Settings
# ═══════════════════════════════════════════════════════════

worker_max_tasks_per_child = 200

# Enable with: celery -A leadflow.tasks worker -E
worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
# Run a dedicated worker:
#   celery -A leadflow.tasks worker -Q maintenance

task_routes = {
    "leadflow.tasks.maintenance_tasks.*": {"queue": "maintenance"},
}

task_default_queue = "default"

# ═══════════════════════════════════════════════════════════
#  Beat Schedule (periodic tasks)
# ═══════════════════════════════════════════════════════════
#   celery -A leadflow.tasks beat

beat_schedule = {
    "backfill-missing-steps": {
        "task": "leadflow.tasks.maintenance_tasks.backfill_missing_steps",
        "schedule": 3600.0,
    },
}
