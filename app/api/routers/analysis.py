"""
app/api/routers/analysis.py

LLM analysis and service health HTTP endpoints.
"""

from __future__ import annotations

import math
from typing import Awaitable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status

from app.domain.spreadsheet import DocumentRecord, ParsedTable
from app.schemas.analysis import (
    ChatRequest,
    ChatResponse,
    MultiSummaryRequest,
    MultiSummaryResponse,
    ServiceStatusResponse,
    SummaryRequest,
    SummaryResponse,
)
from app.services.analysis_service import AnalysisService, get_analysis_service
from llm_synthesis.circuit_breaker import CircuitOpenError
from llm_synthesis.resilience import PermanentServiceError, TransientServiceError
from llm_synthesis.retry import LLMRetryExhaustedError

router = APIRouter(tags=["analysis"])

T = TypeVar("T")


async def _call_service(awaitable: Awaitable[T]) -> T:
    """
    Await a service call and map its failures onto HTTP errors.
    """

    try:
        return await awaitable
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except CircuitOpenError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
            headers={"Retry-After": str(max(1, math.ceil(exc.retry_after_seconds)))},
        ) from exc
    except TransientServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except (PermanentServiceError, LLMRetryExhaustedError) as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc


@router.post("/analysis/summary", response_model=SummaryResponse)
async def summarize_spreadsheet(
    payload: SummaryRequest,
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> SummaryResponse:
    result = await _call_service(
        analysis_service.summarize(payload.spreadsheet_data, headers=payload.headers)
    )
    return SummaryResponse(
        summary=result.summary,
        analysis_mode=result.analysis_mode,
        from_cache=result.from_cache,
    )


@router.post("/analysis/multi-summary", response_model=MultiSummaryResponse)
async def summarize_documents(
    payload: MultiSummaryRequest,
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> MultiSummaryResponse:
    """
    Summarize each document with source citations plus the combined dataset.
    """

    documents = [
        DocumentRecord(
            id=str(index),
            file_name=document.file_name,
            table=ParsedTable(headers=tuple(document.headers)),
            text_representation=document.text_representation,
        )
        for index, document in enumerate(payload.documents)
    ]
    result = await _call_service(
        analysis_service.summarize_documents(documents, payload.combined_data)
    )
    return MultiSummaryResponse(
        combined_summary=result.combined_summary,
        per_document=result.per_document,
    )


@router.post("/analysis/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> ChatResponse:
    result = await _call_service(
        analysis_service.answer_question(payload.spreadsheet_data, payload.question)
    )
    return ChatResponse(answer=result.answer, forecast=result.forecast)


@router.get("/service-status", response_model=ServiceStatusResponse)
def get_service_status(
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> ServiceStatusResponse:
    return ServiceStatusResponse.from_status(analysis_service.service_status())


@router.post("/service-status/reset", response_model=ServiceStatusResponse)
def reset_service_status(
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> ServiceStatusResponse:
    """
    Operator override: close the circuit and clear the failure count.
    """

    return ServiceStatusResponse.from_status(analysis_service.reset_service_status())
