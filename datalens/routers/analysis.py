"""
Analysis routes - correlation matrices and insights over row sets
"""
import asyncio
from typing import Any, Dict, List

from fastapi import APIRouter, Body
from pydantic import BaseModel, Field

from datalens.services.analyzer import analyze_records
from datalens.services.correlation import correlation_matrix
from datalens.services.insights import generate_insights

router = APIRouter(prefix="/analysis", tags=["analysis"])


class CorrelationRequest(BaseModel):
    rows: List[Dict[str, Any]]
    columns: List[str] = Field(min_length=1)


@router.post("/correlation")
async def correlation(request: CorrelationRequest):
    """Pearson matrix over a chosen subset of numeric columns"""
    loop = asyncio.get_event_loop()
    result = await loop.run_in_executor(None, correlation_matrix, request.rows, request.columns)
    return result.to_dict()


@router.post("/insights")
async def insights(records: List[Any] = Body(...)):
    """Analyze records and summarise the findings in sentences"""
    loop = asyncio.get_event_loop()
    analysis = await loop.run_in_executor(None, analyze_records, records)
    return {
        "qualityScore": analysis.quality_score,
        "insights": generate_insights(analysis),
    }
