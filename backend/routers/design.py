"""Design cloning API endpoints"""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from services.design_fetcher import fetch_website

router = APIRouter()


class FetchDesignRequest(BaseModel):
    """Request to download a reference page"""

    url: str | None = None


class FetchDesignResponse(BaseModel):
    ok: bool = True
    html: str


@router.post("/fetch-design", response_model=FetchDesignResponse)
async def fetch_design(request: FetchDesignRequest) -> FetchDesignResponse:
    html = await fetch_website(request.url)
    return FetchDesignResponse(html=html)
