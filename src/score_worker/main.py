"""Celery application for the score worker."""

from celery import Celery
from celery.schedules import crontab

from recommendation_engine.config import get_settings

settings = get_settings()

app = Celery(
    "score_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "score_worker.tasks.recompute_scores",
    ],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes
    task_soft_time_limit=540,  # 9 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="scores",
    task_routes={
        "score_worker.tasks.*": {"queue": "scores"},
    },
)

app.conf.beat_schedule = {
    # Full recompute once a day
    "recompute-all-scores": {
        "task": "score_worker.tasks.recompute_scores.recompute_all_scores",
        "schedule": crontab(minute=0, hour=settings.score_full_recompute_hour),
    },
    # Drain products queued after user activity
    "drain-pending-scores": {
        "task": "score_worker.tasks.recompute_scores.drain_pending_scores",
        "schedule": crontab(minute=f"*/{settings.score_pending_drain_minutes}"),
    },
}


def run() -> None:
    """Run the Celery worker. One process keeps score writes single-writer."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "scores", "--concurrency=1"])


if __name__ == "__main__":
    run()
