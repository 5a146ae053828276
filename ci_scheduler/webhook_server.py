"""Webhook server receiving GitHub events for the scheduler."""

from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request

from ci_scheduler.engine.scheduler import Scheduler
from ci_scheduler.exceptions import EventDecodeError, SchedulerError
from ci_scheduler.models.events import (
    CheckRunEvent,
    CheckSuiteAction,
    CheckSuiteEvent,
    PullRequestAction,
    PullRequestEvent,
    PushEvent,
    WebhookEvent,
    decode_event,
)
from ci_scheduler.utils.logging_config import bind_event_context

log = structlog.get_logger(__name__)

PRESUBMIT_ACTIONS = frozenset({PullRequestAction.OPENED, PullRequestAction.REOPENED, PullRequestAction.SYNCHRONIZE})


def create_app(scheduler: Scheduler) -> FastAPI:
    """Create the webhook application around ``scheduler``.

    Args:
        scheduler: Scheduler handling decoded events

    Returns:
        FastAPI app exposing ``POST /webhook/github`` and ``GET /health``
    """
    app = FastAPI(title="CI Scheduler Webhook Server")

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await scheduler.close()
        log.info("webhook_server_stopped")

    @app.post("/webhook/github")
    async def github_webhook(request: Request) -> dict[str, Any]:
        """Handle GitHub webhook events."""
        event_type = request.headers.get("X-GitHub-Event")
        if not event_type:
            raise HTTPException(status_code=400, detail="Missing X-GitHub-Event header")

        delivery = request.headers.get("X-GitHub-Delivery")
        bind_event_context(event_type=event_type, delivery=delivery)

        if event_type == "ping":
            return {"status": "success", "event_type": event_type}

        try:
            payload = await request.json()
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Request body is not valid JSON") from e

        log.info("webhook_received", event_type=event_type)

        try:
            event = decode_event(event_type, payload)
            result = await handle_event(scheduler, event)
        except EventDecodeError as e:
            log.warning("webhook_payload_rejected", error=e.message)
            raise HTTPException(status_code=400, detail=e.message) from e
        except SchedulerError as e:
            log.error("webhook_processing_failed", error=e.message, exc_info=True)
            raise HTTPException(status_code=500, detail=e.message) from e
        except Exception as e:
            log.error("webhook_processing_unexpected", error=str(e), exc_info=True)
            raise HTTPException(status_code=500, detail="Internal server error") from e

        return {"status": "success", "event_type": event_type, **result}

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "ci-scheduler"}

    return app


async def handle_event(scheduler: Scheduler, event: WebhookEvent) -> dict[str, Any]:
    """Route a decoded event to the scheduler.

    Returns:
        Summary fields merged into the webhook response
    """
    if isinstance(event, PushEvent):
        inserted = await scheduler.add_commits(event.to_commits())
        return {"commits_added": len(inserted)}

    if isinstance(event, PullRequestEvent):
        return await handle_pull_request_event(scheduler, event)

    if isinstance(event, CheckRunEvent):
        return {"handled": await scheduler.process_check_run(event)}

    if isinstance(event, CheckSuiteEvent):
        return await handle_check_suite_event(scheduler, event)

    return {}


async def handle_pull_request_event(scheduler: Scheduler, event: PullRequestEvent) -> dict[str, Any]:
    pr = event.pull_request
    slug = event.repository.full_name

    if event.action == PullRequestAction.CLOSED:
        if not pr.merged:
            log.debug("pull_request_closed_unmerged", number=pr.number)
            return {"commits_added": 0}
        commit = await scheduler.add_pull_request(pr)
        return {"commits_added": 1 if commit else 0}

    if event.action in PRESUBMIT_ACTIONS:
        if pr.head is None or not pr.head.sha:
            raise EventDecodeError(f"Pull request #{pr.number} has no head sha", event_name="pull_request")
        result = await scheduler.trigger_presubmit_targets(
            branch=pr.base.ref,
            pr_number=pr.number,
            slug=slug,
            commit_sha=pr.head.sha,
        )
        return {"validation_passed": result.validation_passed, "builds_scheduled": len(result.builds)}

    log.debug("pull_request_action_ignored", action=event.action.value, number=pr.number)
    return {}


async def handle_check_suite_event(scheduler: Scheduler, event: CheckSuiteEvent) -> dict[str, Any]:
    if event.action != CheckSuiteAction.REREQUESTED:
        log.debug("check_suite_action_ignored", action=event.action.value)
        return {}

    retried = 0
    for link in event.check_suite.pull_requests:
        builds = await scheduler.retry_presubmit_targets(
            pr_number=link.number,
            slug=event.repository.full_name,
            commit_sha=event.check_suite.head_sha,
            check_suite_event=event,
        )
        retried += len(builds)
    return {"builds_retried": retried}
