import pytest

from app.core.exceptions import NotFoundError, ProviderError
from app.scheduler import tasks
from app.scheduler.tasks import enqueue, get_status, retry_delay, run_task, send_welcome_task


@pytest.fixture(autouse=True)
def clean_queue():
    tasks.failed_tasks.clear()
    tasks.scheduler.remove_all_jobs()
    yield
    tasks.failed_tasks.clear()
    tasks.scheduler.remove_all_jobs()


@pytest.fixture
def requeued(monkeypatch):
    calls = []

    def fake_enqueue(func, *args, name=None, attempt=1, delay_seconds=0):
        calls.append({"func": func, "args": args, "name": name, "attempt": attempt, "delay": delay_seconds})
        return "job-1"

    monkeypatch.setattr(tasks, "enqueue", fake_enqueue)
    return calls


def test_retry_delay_doubles():
    assert [retry_delay(n) for n in (1, 2, 3)] == [5, 10, 20]


def test_enqueue_adds_pending_job():
    async def noop(db):
        return None

    job_id = enqueue(noop, name="noop")

    status = get_status()
    assert status["running"] is False
    assert [job["id"] for job in status["pending"]] == [job_id]
    assert status["pending"][0]["name"] == "noop (attempt 1)"
    assert status["failed"] == []


@pytest.mark.asyncio
class TestRunTask:
    async def test_success(self, requeued):
        seen = []

        async def work(db, value):
            seen.append(value)

        assert await run_task(work, ("v-1",), "work") is True
        assert seen == ["v-1"]
        assert requeued == []

    async def test_transient_failure_is_requeued_with_backoff(self, requeued):
        async def flaky(db, visitor_id):
            raise RuntimeError("connection reset")

        assert await run_task(flaky, ("v-1",), "flaky") is False

        assert len(requeued) == 1
        assert requeued[0]["args"] == ("v-1",)
        assert requeued[0]["attempt"] == 2
        assert requeued[0]["delay"] == 5
        assert list(tasks.failed_tasks) == []

    async def test_gives_up_after_max_attempts(self, requeued):
        async def flaky(db, visitor_id):
            raise ProviderError("whatsapp is down", channel="whatsapp", retryable=True)

        assert await run_task(flaky, ("v-1",), "flaky", attempt=3) is False

        assert requeued == []
        (parked,) = tasks.failed_tasks
        assert parked["task"] == "flaky"
        assert parked["attempts"] == 3
        assert parked["args"] == ["v-1"]
        assert "down" in parked["error"]

    async def test_permanent_errors_are_not_retried(self, requeued):
        async def missing(db, visitor_id):
            raise NotFoundError("Visitor not found")

        assert await run_task(missing, ("v-1",), "missing") is False

        assert requeued == []
        assert len(tasks.failed_tasks) == 1

    async def test_non_retryable_provider_error(self, requeued):
        async def rejected(db):
            raise ProviderError("template rejected", channel="whatsapp", retryable=False)

        assert await run_task(rejected, (), "rejected") is False
        assert requeued == []


@pytest.mark.asyncio
class TestVisitorTasks:
    async def test_welcome_failure_is_retryable(self, db, factory):
        # WhatsApp is not configured in the test environment
        visitor = factory.visitor(factory.church())

        with pytest.raises(ProviderError) as exc_info:
            await send_welcome_task(db, visitor.id)

        assert exc_info.value.retryable is True
        assert exc_info.value.channel == "whatsapp"

    async def test_welcome_without_phone_succeeds_quietly(self, db, factory):
        visitor = factory.visitor(factory.church(), phone=None)
        assert await send_welcome_task(db, visitor.id) is None
