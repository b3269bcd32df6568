from celery import Celery

from loadflow_api.config import settings

celery_app = Celery("loadflow", broker=settings.redis_url, backend=settings.redis_url)

# Payloads and results are plain dicts, so JSON is the only wire format
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    task_track_started=True,
    result_expires=settings.result_ttl_s,
    include=["loadflow_api.worker.tasks"],
)
