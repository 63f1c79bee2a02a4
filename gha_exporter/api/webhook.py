from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from gha_exporter.app import Exporter
from gha_exporter.services.github.github_webhook import handle_github_event

from .deps import get_exporter

router = APIRouter(tags=["Webhooks"])


@router.post("/webhook", status_code=status.HTTP_200_OK, response_class=PlainTextResponse)
async def github_webhook(
    request: Request,
    x_github_event: str = Header(None),
    exporter: Exporter = Depends(get_exporter),
):
    """Handle GitHub workflow_run webhook deliveries."""
    payload_bytes = await request.body()
    # The hand-off blocks until the worker is free, keep it off the event loop
    return await run_in_threadpool(
        handle_github_event, exporter.enqueue, x_github_event, payload_bytes
    )
