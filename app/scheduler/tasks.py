"""APScheduler background queue — one-off side effects with retry and a failure channel.

Trigger jobs are invoked from outside (cron endpoints); this scheduler only
runs fire-and-forget work queued by request handlers, such as the visitor
welcome message.
"""

import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Deque, Dict, List, Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.exceptions import AppError, ProviderError
from app.infrastructure.database import SessionLocal

settings = get_settings()
logger = logging.getLogger(__name__)
tz = pytz.timezone(settings.TIMEZONE)

scheduler = AsyncIOScheduler(timezone=tz)

MAX_FAILED_TASKS = 50
failed_tasks: Deque[Dict] = deque(maxlen=MAX_FAILED_TASKS)

TaskFunc = Callable[..., Awaitable[object]]


def retry_delay(attempt: int) -> int:
    """Seconds to wait before running `attempt + 1`."""
    return settings.TASK_RETRY_BASE_SECONDS * 2 ** (attempt - 1)


def enqueue(func: TaskFunc, *args, name: Optional[str] = None, attempt: int = 1, delay_seconds: int = 0) -> str:
    """Schedule `func(db, *args)` to run once. Returns the job id."""
    task_name = name or func.__name__
    run_at = datetime.now(tz) + timedelta(seconds=delay_seconds)
    job = scheduler.add_job(
        run_task,
        trigger=DateTrigger(run_date=run_at, timezone=tz),
        args=[func, args, task_name, attempt],
        name=f"{task_name} (attempt {attempt})",
        misfire_grace_time=None,
    )
    logger.info(f"Queued task {task_name} attempt {attempt} to run at {run_at.strftime('%d/%m/%Y %H:%M:%S')}")
    return job.id


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, ProviderError):
        return exc.retryable
    # Missing rows and bad input will not fix themselves
    return not isinstance(exc, AppError)


async def run_task(func: TaskFunc, args: tuple, name: str, attempt: int = 1) -> bool:
    """Run one attempt in its own session. Failures are retried with backoff, then parked."""
    db: Session = SessionLocal()
    try:
        await func(db, *args)
    except Exception as e:
        db.rollback()
        if _is_retryable(e) and attempt < settings.TASK_MAX_ATTEMPTS:
            delay = retry_delay(attempt)
            logger.warning(f"Task {name} attempt {attempt} failed: {e}; retrying in {delay}s")
            enqueue(func, *args, name=name, attempt=attempt + 1, delay_seconds=delay)
        else:
            failed_tasks.append({
                "task": name,
                "args": [str(a) for a in args],
                "attempts": attempt,
                "error": str(e),
                "failed_at": datetime.now(tz).isoformat(),
            })
            logger.error(f"Task {name} gave up after {attempt} attempt(s): {e}")
        return False
    finally:
        db.close()

    logger.info(f"Task {name} completed on attempt {attempt}")
    return True


async def send_welcome_task(db: Session, visitor_id: str) -> None:
    from app.application.services.trigger_service import notify_welcome_visitor

    entry = await notify_welcome_visitor(db, visitor_id)
    if entry is not None and entry.status == "failed":
        raise ProviderError(entry.error or "Welcome message failed", channel=entry.channel, retryable=True)


async def send_visitor_assigned_task(db: Session, visitor_id: str, leader_id: Optional[str] = None) -> None:
    from app.application.services.trigger_service import notify_visitor_assigned

    entry = await notify_visitor_assigned(db, visitor_id, leader_id)
    if entry.status == "failed":
        raise ProviderError(entry.error or "Assignment notice failed", channel=entry.channel, retryable=True)


def get_status() -> Dict:
    jobs: List[Dict] = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
        }
        for job in scheduler.get_jobs()
    ]
    return {
        "running": scheduler.running,
        "pending": jobs,
        "failed": list(failed_tasks),
    }


def start_scheduler():
    """Start the background queue."""
    if not scheduler.running:
        scheduler.start()
        logger.info(f"Task scheduler started ({settings.TIMEZONE})")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Task scheduler stopped")
