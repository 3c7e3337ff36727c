"""
Yield API Routes
Ranked yield opportunities with risk classification
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_yield_service
from app.domain.services.yield_ranking import RankRequest, YieldRankingService

router = APIRouter()


@router.get("/yields")
async def get_yields(
    extended: bool = False,
    min_apy: float = Query(0.0, alias="minApy"),
    min_tvl: Optional[float] = Query(None, alias="minTvl"),
    service: YieldRankingService = Depends(get_yield_service),
):
    """
    Rank pools from the yield feed

    extended=true adds read-only protocols and trading-fee yields.
    """
    request = RankRequest(extended=extended, min_apy=min_apy, min_tvl=min_tvl)
    ranked = await service.rank(request)
    return service.to_response(ranked)
