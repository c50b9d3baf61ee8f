"""Integration tests for the Replay Jobs API

Requests go through the FastAPI app, the supervisor and the SQLAlchemy
repositories; the log is the in-memory client seeded in conftest.
"""
import pytest
from httpx import AsyncClient

BASE = "/api/replay-jobs"


def submission(**overrides) -> dict:
    body = {
        "cluster_id": "cluster-1",
        "source_topic": "orders",
        "target_topic": "orders-urgent",
        "start_offset": 0,
    }
    body.update(overrides)
    return body


async def submit(client: AsyncClient, **overrides) -> str:
    response = await client.post(BASE, json=submission(**overrides), headers={"X-User-Id": "alice"})
    assert response.status_code == 202, response.text
    return response.json()["job_id"]


@pytest.mark.asyncio
class TestSubmitReplayJob:

    async def test_submit_returns_pending_job(self, client: AsyncClient):
        response = await client.post(BASE, json=submission(), headers={"X-User-Id": "alice"})

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["next_scheduled_run"] is None

        job = (await client.get(f"{BASE}/{data['job_id']}")).json()
        assert job["created_by"] == "alice"
        assert job["retry_count"] == 0
        assert job["progress"]["messages_processed"] == 0

    async def test_validation_errors_are_listed(self, client: AsyncClient):
        response = await client.post(BASE, json=submission(consumer_group_id="billing", start_offset=-1))

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert "mutually exclusive" in error["reason"]
        assert "start_offset must be >= 0" in error["reason"]

    async def test_unknown_topic_rejected(self, client: AsyncClient):
        response = await client.post(BASE, json=submission(source_topic="ghost"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TOPIC_NOT_FOUND"

    async def test_malformed_body_rejected(self, client: AsyncClient):
        response = await client.post(BASE, json={"source_topic": "orders"})

        assert response.status_code == 422

    async def test_recurring_submission_reports_next_run(self, client: AsyncClient):
        response = await client.post(BASE, json=submission(
            schedule_type="RECURRING", schedule_cron="0 3 * * *", schedule_timezone="Europe/Paris",
        ))

        assert response.status_code == 202
        assert response.json()["next_scheduled_run"] is not None

    async def test_bad_cron_rejected(self, client: AsyncClient):
        response = await client.post(BASE, json=submission(schedule_type="RECURRING", schedule_cron="every day"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
class TestQueryReplayJobs:

    async def test_get_unknown_job(self, client: AsyncClient):
        response = await client.get(f"{BASE}/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "JOB_NOT_FOUND"

    async def test_list_with_filters(self, client: AsyncClient):
        first = await submit(client)
        second = await submit(client, target_topic="orders-copy")
        await client.post(f"{BASE}/{first}/cancel")

        everything = (await client.get(BASE)).json()
        pending = (await client.get(BASE, params={"status": "PENDING"})).json()
        other_cluster = (await client.get(BASE, params={"cluster_id": "cluster-2"})).json()

        assert everything["total"] == 2
        assert [item["id"] for item in pending["items"]] == [second]
        assert other_cluster["total"] == 0

    async def test_list_limit_is_bounded(self, client: AsyncClient):
        response = await client.get(BASE, params={"limit": 0})

        assert response.status_code == 422


@pytest.mark.asyncio
class TestReplayJobLifecycle:

    async def test_executed_job_reports_progress_and_history(self, client: AsyncClient, supervisor, log_client):
        # Arrange
        job_id = await submit(client, filters={"value_filter": {"type": "CONTAINS", "value": "urgent"}})

        # Act
        await supervisor.execute_job(job_id)

        # Assert
        job = (await client.get(f"{BASE}/{job_id}")).json()
        assert job["status"] == "COMPLETED"
        assert job["progress"]["messages_processed"] == 40
        assert job["progress"]["messages_matched"] == 8
        assert job["progress"]["messages_produced"] == 8
        assert len(log_client.records("orders-urgent")) == 8

        history = (await client.get(f"{BASE}/{job_id}/history")).json()
        actions = [entry["action"] for entry in history["items"]]
        assert actions[0] == "ACTION_STARTED"
        assert actions[-1] == "ACTION_COMPLETED"
        assert "MESSAGE_PROCESSED" in actions

    async def test_cancel_pending_job(self, client: AsyncClient):
        job_id = await submit(client)

        response = await client.post(f"{BASE}/{job_id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

        again = await client.post(f"{BASE}/{job_id}/cancel")
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_JOB_STATE"

    async def test_retry_failed_job(self, client: AsyncClient, supervisor, log_client):
        job_id = await submit(client, end_offset=500)
        supervisor.runner.max_empty_polls = 0

        await supervisor.execute_job(job_id)
        failed = (await client.get(f"{BASE}/{job_id}")).json()
        assert failed["status"] == "FAILED"
        assert "No records available" in failed["error_message"]

        response = await client.post(f"{BASE}/{job_id}/retry")

        assert response.status_code == 200
        assert response.json()["status"] == "PENDING"
        assert response.json()["error_message"] is None

    async def test_retry_rejected_unless_failed(self, client: AsyncClient):
        job_id = await submit(client)

        response = await client.post(f"{BASE}/{job_id}/retry")

        assert response.status_code == 409

    async def test_delete_only_terminal_jobs(self, client: AsyncClient):
        job_id = await submit(client)

        refused = await client.delete(f"{BASE}/{job_id}")
        assert refused.status_code == 409

        await client.post(f"{BASE}/{job_id}/cancel")
        deleted = await client.delete(f"{BASE}/{job_id}")
        assert deleted.status_code == 204

        assert (await client.get(f"{BASE}/{job_id}")).status_code == 404
        assert (await client.get(f"{BASE}/{job_id}/history")).status_code == 404


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
