"""
YIELD RANKING PIPELINE
Filter, classify and rank third-party yield pools

RESPONSIBILITIES:
- Parse raw feed elements (skip malformed ones)
- Chain / threshold / protocol allow-list filters
- Risk classification
- Stable apy-descending ordering and truncation

RULES:
❌ No I/O in the pipeline itself
✅ Deterministic for a given input
✅ Secondary source is best-effort
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.domain.errors import UpstreamError, ValidationError
from app.domain.models import RiskLevel, YieldOpportunity
from app.domain.services.config_engine import YieldRankingConfig

logger = logging.getLogger(__name__)

PROTOCOL_SEPARATORS = "-_. "


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class RawPool:
    """One element of the DefiLlama /pools payload"""
    pool: str
    chain: str
    project: str
    symbol: str
    tvl_usd: float
    apy: float
    stablecoin: bool = False
    il_risk: str = "no"

    @classmethod
    def from_dict(cls, data: Any) -> Optional["RawPool"]:
        """Parse a feed element; None when a required field is missing or mistyped"""
        if not isinstance(data, dict):
            return None
        chain, project = data.get("chain"), data.get("project")
        apy, tvl = data.get("apy"), data.get("tvlUsd")
        if not isinstance(chain, str) or not isinstance(project, str):
            return None
        if not _is_number(apy) or not _is_number(tvl):
            return None
        return cls(
            pool=str(data.get("pool") or ""),
            chain=chain,
            project=project,
            symbol=str(data.get("symbol") or ""),
            tvl_usd=float(tvl),
            apy=float(apy),
            stablecoin=data.get("stablecoin") is True,
            il_risk=str(data.get("ilRisk") or "no").lower(),
        )


@dataclass(frozen=True)
class SecondaryYield:
    """Trading-fee yield row from the secondary feed"""
    asset: str
    apy: float
    tvl: float

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SecondaryYield"]:
        if not isinstance(data, dict):
            return None
        if not _is_number(data.get("apy")) or not _is_number(data.get("tvl")):
            return None
        return cls(asset=str(data.get("asset") or ""), apy=float(data["apy"]), tvl=float(data["tvl"]))


@dataclass(frozen=True)
class RankRequest:
    extended: bool = False
    min_apy: float = 0.0
    min_tvl: Optional[float] = None

    def __post_init__(self):
        if not math.isfinite(self.min_apy) or self.min_apy < 0:
            raise ValidationError("minApy must be a finite number, zero or positive")
        if self.min_tvl is not None and (not math.isfinite(self.min_tvl) or self.min_tvl < 0):
            raise ValidationError("minTvl must be a finite number, zero or positive")


def parse_pools(elements: Iterable[Any]) -> List[RawPool]:
    pools = []
    skipped = 0
    for element in elements:
        pool = RawPool.from_dict(element)
        if pool is None:
            skipped += 1
            continue
        pools.append(pool)
    if skipped:
        logger.debug("Skipped %d malformed pool elements", skipped)
    return pools


def matches_protocol(project: str, token: str) -> bool:
    """
    Exact or prefix-at-separator match, case-insensitive.

    "kamino" matches "kamino-lend" and "kamino.finance" but not "kaminox".
    """
    name = project.lower()
    token = token.lower()
    if name == token:
        return True
    return (
        len(name) > len(token)
        and name.startswith(token)
        and name[len(token)] in PROTOCOL_SEPARATORS
    )


def matches_any(project: str, tokens: Sequence[str]) -> bool:
    return any(matches_protocol(project, t) for t in tokens)


def classify_risk(stablecoin: bool, il_risk: str, apy: float, config: YieldRankingConfig) -> RiskLevel:
    """
    Coarse risk tier.

    Stablecoin pools are low regardless of apy; impermanent-loss exposure or
    apy above the high threshold is high; everything else is medium.
    """
    if stablecoin:
        return RiskLevel.LOW
    if il_risk == "yes":
        return RiskLevel.HIGH
    if apy > config.high_apy_threshold:
        return RiskLevel.HIGH
    if apy > config.medium_apy_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.MEDIUM


class YieldRankingPipeline:
    """Pure ranking over already-fetched feed data"""

    def __init__(self, config: YieldRankingConfig):
        self.config = config

    def allowed_protocols(self, extended: bool) -> tuple:
        if extended:
            return self.config.supported_protocols + self.config.extended_protocols
        return self.config.supported_protocols

    def result_limit(self, extended: bool) -> int:
        return self.config.max_results_extended if extended else self.config.max_results

    def _to_opportunity(self, pool: RawPool) -> YieldOpportunity:
        return YieldOpportunity(
            protocol=pool.project,
            asset=pool.symbol,
            apy=round(pool.apy, 2),
            tvl=int(round(pool.tvl_usd)),
            risk=classify_risk(pool.stablecoin, pool.il_risk, pool.apy, self.config),
            supported=matches_any(pool.project, self.config.supported_protocols),
            pool=pool.pool,
        )

    def _secondary_opportunities(
        self, rows: Iterable[SecondaryYield], min_apy: float, min_tvl: float
    ) -> List[YieldOpportunity]:
        return [
            YieldOpportunity(
                protocol=self.config.secondary_protocol,
                asset=row.asset,
                apy=round(row.apy, 2),
                tvl=int(round(row.tvl)),
                risk=RiskLevel.HIGH,
                supported=False,
                pool=self.config.secondary_pool,
            )
            for row in rows
            if row.apy >= min_apy and row.tvl >= min_tvl
        ]

    def rank(
        self,
        pools: Sequence[RawPool],
        request: RankRequest,
        secondary: Optional[Sequence[SecondaryYield]] = None,
    ) -> List[YieldOpportunity]:
        """
        Rank pools for the request.

        Args:
            pools: Parsed feed elements
            request: Thresholds and extended flag
            secondary: Trading-fee rows, merged only in extended mode

        Returns:
            Opportunities ordered by apy descending, bounded by the result limit
        """
        min_tvl = self.config.default_min_tvl if request.min_tvl is None else request.min_tvl
        tokens = self.allowed_protocols(request.extended)
        limit = self.result_limit(request.extended)

        candidates = [
            p for p in pools
            if p.chain == self.config.chain
            and p.tvl_usd >= min_tvl
            and p.apy >= request.min_apy
            and matches_any(p.project, tokens)
        ]
        candidates.sort(key=lambda p: p.apy, reverse=True)
        ranked = [self._to_opportunity(p) for p in candidates[:limit]]

        if request.extended and secondary:
            extra = self._secondary_opportunities(secondary, request.min_apy, min_tvl)
            merged = extra + ranked
            # Stable: equal apy keeps secondary rows first
            merged.sort(key=lambda o: o.apy, reverse=True)
            ranked = merged[:limit]

        return ranked


class YieldRankingService:
    """Fetch feeds and run the ranking pipeline"""

    def __init__(self, config: YieldRankingConfig, pool_feed, secondary_feed=None):
        self.pipeline = YieldRankingPipeline(config)
        self.pool_feed = pool_feed
        self.secondary_feed = secondary_feed

    @property
    def supported_protocols(self) -> List[str]:
        return list(self.pipeline.config.supported_protocols)

    async def _fetch_secondary(self) -> List[SecondaryYield]:
        if self.secondary_feed is None:
            return []
        try:
            rows = await self.secondary_feed.fetch_yields()
        except UpstreamError as exc:
            logger.warning("Secondary yield source failed, using primary only: %s", exc)
            return []
        return [y for y in (SecondaryYield.from_dict(r) for r in rows) if y is not None]

    async def rank(self, request: RankRequest) -> List[YieldOpportunity]:
        """
        Raises:
            UpstreamError: primary feed unavailable
        """
        pools = parse_pools(await self.pool_feed.fetch_pools())
        secondary = await self._fetch_secondary() if request.extended else None
        ranked = self.pipeline.rank(pools, request, secondary)
        logger.info(
            "Ranked %d yields from %d pools (extended=%s)",
            len(ranked), len(pools), request.extended,
        )
        return ranked

    def to_response(self, ranked: List[YieldOpportunity]) -> Dict[str, Any]:
        return {
            "count": len(ranked),
            "supported_protocols": self.supported_protocols,
            "yields": [o.to_dict() for o in ranked],
        }

    async def close(self) -> None:
        for feed in (self.pool_feed, self.secondary_feed):
            if feed is not None and hasattr(feed, "close"):
                await feed.close()
