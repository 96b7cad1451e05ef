"""
API Router: Priority and Failed-Call Analysis.

Stateless endpoints used by the admin dashboard and by integrations that
log tasks on their own.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from repairdesk.api.dependencies import get_resolver
from repairdesk.errors import UpstreamError
from repairdesk.logging_config import get_logger
from repairdesk.schemas.chat import FailedCallDetectRequest, PriorityAnalysisRequest
from repairdesk.schemas.classification import ClassificationResult, FailedCallDetection
from repairdesk.services.failed_call_detector import detect_failed_call
from repairdesk.services.priority_resolver import PriorityResolver, ProblemInput

logger = get_logger(__name__)
router = APIRouter(tags=["Analysis"])

MAX_BATCH_SIZE = 50


class BatchAnalysisRequest(BaseModel):
    problems: list[PriorityAnalysisRequest] = Field(min_length=1, max_length=MAX_BATCH_SIZE)


@router.post("/priority/analyze", response_model=ClassificationResult)
async def analyze_priority(
    body: PriorityAnalysisRequest, resolver: PriorityResolver = Depends(get_resolver)
) -> ClassificationResult:
    try:
        return await resolver.analyze(body.problem_description, body.context, body.customer)
    except UpstreamError as e:
        logger.error("priority_analysis_failed", error=str(e))
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/priority/batch", response_model=list[ClassificationResult])
async def analyze_priority_batch(
    body: BatchAnalysisRequest, resolver: PriorityResolver = Depends(get_resolver)
) -> list[ClassificationResult]:
    problems = [ProblemInput(p.problem_description, p.context, p.customer) for p in body.problems]
    try:
        return await resolver.batch_analyze(problems)
    except UpstreamError as e:
        logger.error("batch_priority_analysis_failed", count=len(problems), error=str(e))
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/failed-calls/detect", response_model=FailedCallDetection)
async def detect_failed_call_endpoint(body: FailedCallDetectRequest) -> FailedCallDetection:
    return detect_failed_call(body.message_text)
