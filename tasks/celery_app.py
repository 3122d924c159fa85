"""
Celery application configuration.

This module sets up Celery for periodic maintenance with Redis as the
message broker and result backend. Imports themselves run synchronously
in the request that triggers them.
"""

import os
from celery import Celery
from kombu import Exchange, Queue

# Get Redis URL from environment
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', REDIS_URL)

# Create Celery application
celery_app = Celery(
    'license_import',
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=['tasks.maintenance_tasks']
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],

    # Timezone
    timezone='UTC',
    enable_utc=True,

    # Task execution
    task_track_started=True,
    task_time_limit=600,  # 10 minutes hard timeout
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,

    # Results
    result_expires=3600,  # Results expire after 1 hour

    # Task routing
    task_default_queue='default',
    task_default_exchange='default',
    task_default_routing_key='default',

    # Task acknowledgement
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Define task queues
celery_app.conf.task_queues = (
    Queue('default', Exchange('default'), routing_key='default'),
    Queue('maintenance', Exchange('maintenance'), routing_key='maintenance.#'),
)

# Task routes
celery_app.conf.task_routes = {
    'tasks.maintenance_tasks.cleanup_stale_uploads': {
        'queue': 'maintenance', 'routing_key': 'maintenance.uploads'
    },
}

# Beat schedule
celery_app.conf.beat_schedule = {
    'cleanup-stale-uploads': {
        'task': 'tasks.maintenance_tasks.cleanup_stale_uploads',
        'schedule': 3600.0,  # Every hour
    },
}


if __name__ == '__main__':
    celery_app.start()
