"""Moderation routes: message inspection, dry-run analysis, stats and review.

Responses to the sender never say which rule fired.  Category lists and
confidences appear only on the operator routes (``/analyze``, ``/queue``,
``/stats``).  Raw matched contact data never appears in any response
(enforced by ContactFilterMiddleware).
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from contactguard.api.deps import (
    get_pipeline,
    get_review_queue,
    get_stats_aggregator,
    get_storage,
)
from contactguard.core.errors import ConversationNotFoundError
from contactguard.db.models import ModerationQueueItem
from contactguard.pipeline.service import ContentRiskPipeline
from contactguard.pipeline.stats import StatsAggregator
from contactguard.review.queue_manager import ReviewQueueManager
from contactguard.storage.sql import SqlStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/moderation", tags=["moderation"])

# Longest accepted message body; a blank body is valid and is inspected like any other.
MAX_BODY_LENGTH = 20_000


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class InspectBody(BaseModel):
    body: str = Field(max_length=MAX_BODY_LENGTH)
    sender_id: str
    conversation_id: str
    message_id: str | None = None


class AnalyzeBody(BaseModel):
    body: str = Field(max_length=MAX_BODY_LENGTH)


class ResolveBody(BaseModel):
    reviewer_id: str
    decision: str
    rationale: str


class SuspendBody(BaseModel):
    actor: str
    reason: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _serialize_item(item: ModerationQueueItem) -> dict:
    data = dict(item.data or {})
    # Raw evidence stays in the stored record only.
    data.pop("detected_content", None)
    return {
        "id": str(item.id),
        "type": item.type,
        "priority": item.priority,
        "title": item.title,
        "description": item.description,
        "status": item.status,
        "resolution": item.resolution,
        "reviewed_by": item.reviewed_by,
        "conversation_id": item.conversation_id,
        "message_id": item.message_id,
        "data": data,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/inspect", summary="Inspect an outbound message before it is stored")
def inspect_message(
    body: InspectBody,
    storage: SqlStorage = Depends(get_storage),
    pipeline: ContentRiskPipeline = Depends(get_pipeline),
):
    """Run the pipeline on *body* and tell the sender whether it may be stored.

    An empty body is allowed through with no findings.  Error details never
    echo caller-supplied identifiers.
    """
    try:
        context = storage.get_conversation_context(body.conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")

    if context.blocked:
        return JSONResponse(
            status_code=403,
            content={
                "error": "This conversation has been blocked",
                "message": "This conversation is under review and cannot receive new messages.",
                "blocked": True,
            },
        )

    decision = pipeline.inspect_message(
        body.body,
        sender_id=body.sender_id,
        conversation_id=body.conversation_id,
        message_id=body.message_id,
    )
    if decision.allowed:
        return {"allowed": True, "message_id": decision.message_id}

    return JSONResponse(
        status_code=403,
        content={
            "error": "Message blocked",
            "message": decision.rejection_message,
            "blocked": True,
        },
    )


@router.post("/analyze", summary="Score a message without side effects (operators only)")
def analyze_message(
    body: AnalyzeBody,
    pipeline: ContentRiskPipeline = Depends(get_pipeline),
):
    return pipeline.analyze(body.body).to_dict()


@router.get("/stats", summary="Moderation dashboard counters")
def get_stats(aggregator: StatsAggregator = Depends(get_stats_aggregator)):
    return aggregator.get_stats().to_dict()


@router.get("/queue", summary="List moderation review items")
def get_queue(status: str = "pending", rq: ReviewQueueManager = Depends(get_review_queue)):
    return [_serialize_item(item) for item in rq.get_queue(status)]


@router.post("/queue/{item_id}/resolve", summary="Resolve a review item")
def resolve_item(
    item_id: str,
    body: ResolveBody,
    rq: ReviewQueueManager = Depends(get_review_queue),
):
    try:
        item = rq.resolve_item(item_id, body.reviewer_id, body.decision, body.rationale)
    except KeyError:
        raise HTTPException(status_code=404, detail="Review item not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _serialize_item(item)


@router.post("/companies/{company_id}/suspend", summary="Suspend an employer account manually")
def suspend_company(
    company_id: str,
    body: SuspendBody,
    rq: ReviewQueueManager = Depends(get_review_queue),
):
    try:
        company = rq.suspend_account_manually(company_id, body.actor, body.reason)
    except KeyError:
        raise HTTPException(status_code=404, detail="Company not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"company_id": company.id, "subscription_status": company.subscription_status}
