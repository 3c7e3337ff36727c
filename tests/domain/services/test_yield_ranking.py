import pytest

from app.domain.errors import ValidationError
from app.domain.models import RiskLevel
from app.domain.services.yield_ranking import (
    RankRequest,
    RawPool,
    SecondaryYield,
    YieldRankingPipeline,
    YieldRankingService,
    classify_risk,
    matches_protocol,
    parse_pools,
)

from conftest import FakePoolFeed, FakeSecondaryFeed


def pool(project="kamino-lend", apy=10.0, tvl=1_000_000, chain="Solana", symbol="USDC",
         stablecoin=False, il_risk="no", pool_id=None):
    return {
        "pool": pool_id or f"{project}-{symbol}-{apy}",
        "chain": chain,
        "project": project,
        "symbol": symbol,
        "tvlUsd": tvl,
        "apy": apy,
        "stablecoin": stablecoin,
        "ilRisk": il_risk,
    }


@pytest.fixture()
def ranking_config(config_engine):
    return config_engine.yield_ranking


@pytest.fixture()
def pipeline(ranking_config):
    return YieldRankingPipeline(ranking_config)


@pytest.mark.unit
@pytest.mark.parametrize(
    "stablecoin, il_risk, apy, expected",
    [
        (True, "no", 60, RiskLevel.LOW),
        (True, "yes", 5, RiskLevel.LOW),
        (False, "no", 55, RiskLevel.HIGH),
        (False, "yes", 5, RiskLevel.HIGH),
        (False, "no", 25, RiskLevel.MEDIUM),
        (False, "no", 5, RiskLevel.MEDIUM),
        (False, "no", 50, RiskLevel.MEDIUM),
    ],
)
def test_classify_risk(ranking_config, stablecoin, il_risk, apy, expected):
    assert classify_risk(stablecoin, il_risk, apy, ranking_config) == expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "project, token, expected",
    [
        ("kamino", "kamino", True),
        ("Kamino-Lend", "kamino", True),
        ("kamino_liquidity", "kamino", True),
        ("kamino.finance", "kamino", True),
        ("kaminox", "kamino", False),
        ("pumpkin", "pump", False),
        ("driftwood", "drift", False),
        ("jito-liquid-staking", "jito", True),
        ("marinade-liquid-staking", "marinade", True),
        ("superorca", "orca", False),
    ],
)
def test_matches_protocol(project, token, expected):
    assert matches_protocol(project, token) is expected


@pytest.mark.unit
def test_chain_threshold_and_allow_list_filters(pipeline):
    pools = parse_pools([
        pool("kamino-lend", apy=12),
        pool("kamino-lend", apy=40, chain="Ethereum"),
        pool("drift", apy=30, tvl=50_000),
        pool("orca", apy=0.5),
        pool("raydium-amm", apy=80),
        pool("kaminox", apy=90),
    ])
    ranked = pipeline.rank(pools, RankRequest(min_apy=1))

    assert [(o.protocol, o.apy) for o in ranked] == [("kamino-lend", 12.0)]
    assert ranked[0].supported is True


@pytest.mark.unit
def test_below_threshold_supported_pools_are_excluded(pipeline):
    pools = parse_pools([pool("marinade-liquid-staking", apy=7, tvl=99_999)])
    assert pipeline.rank(pools, RankRequest()) == []


@pytest.mark.unit
def test_extended_mode_adds_read_only_protocols(pipeline):
    pools = parse_pools([pool("raydium-amm", apy=80, il_risk="yes"), pool("orca", apy=10)])

    ranked = pipeline.rank(pools, RankRequest(extended=True))
    assert [o.protocol for o in ranked] == ["raydium-amm", "orca"]
    assert ranked[0].supported is False
    assert ranked[0].risk == RiskLevel.HIGH
    assert ranked[1].supported is True


@pytest.mark.unit
@pytest.mark.parametrize("extended, bound", [(False, 20), (True, 50)])
def test_results_bounded_and_sorted(pipeline, extended, bound):
    projects = ["kamino-lend", "drift", "jito-liquid-staking", "orca", "raydium-amm", "solend"]
    pools = parse_pools([
        pool(projects[i % len(projects)], apy=float((i * 37) % 101), pool_id=f"p{i}")
        for i in range(120)
    ])
    ranked = pipeline.rank(pools, RankRequest(extended=extended))

    assert len(ranked) == bound
    apys = [o.apy for o in ranked]
    assert apys == sorted(apys, reverse=True)


@pytest.mark.unit
def test_output_fields_are_rounded(pipeline):
    pools = parse_pools([pool("kamino", apy=11.4567, tvl=1_234_567.6, stablecoin=True)])
    [opportunity] = pipeline.rank(pools, RankRequest())

    assert opportunity.to_dict() == {
        "protocol": "kamino",
        "asset": "USDC",
        "apy": 11.46,
        "tvl": 1234568,
        "risk": "low",
        "supported": True,
        "pool": "kamino-USDC-11.4567",
    }


@pytest.mark.unit
def test_secondary_rows_merge_by_apy_in_extended_mode(pipeline):
    pools = parse_pools([pool("kamino", apy=30), pool("orca", apy=10)])
    secondary = [
        SecondaryYield(asset="BONK", apy=30, tvl=500_000),
        SecondaryYield(asset="WIF", apy=90, tvl=500_000),
        SecondaryYield(asset="TINY", apy=500, tvl=10),
    ]
    ranked = pipeline.rank(pools, RankRequest(extended=True), secondary)

    assert [(o.protocol, o.asset) for o in ranked] == [
        ("pump.fun", "WIF"),
        ("pump.fun", "BONK"),
        ("kamino", "USDC"),
        ("orca", "USDC"),
    ]
    assert all(o.risk == RiskLevel.HIGH and not o.supported for o in ranked[:2])
    assert ranked[0].pool == "meme-trading"


@pytest.mark.unit
def test_secondary_rows_ignored_without_extended(pipeline):
    pools = parse_pools([pool("kamino", apy=30)])
    ranked = pipeline.rank(pools, RankRequest(), [SecondaryYield(asset="WIF", apy=90, tvl=500_000)])
    assert [o.protocol for o in ranked] == ["kamino"]


@pytest.mark.unit
def test_malformed_pool_elements_are_skipped():
    pools = parse_pools([
        pool("kamino"),
        {"chain": "Solana", "project": "drift", "apy": None, "tvlUsd": 10},
        {"chain": "Solana", "project": "drift", "apy": 5, "tvlUsd": "lots"},
        {"chain": "Solana", "project": "drift", "apy": float("nan"), "tvlUsd": 10},
        "garbage",
    ])
    assert len(pools) == 1
    assert isinstance(pools[0], RawPool)


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [{"min_apy": -1}, {"min_tvl": -5}, {"min_apy": float("nan")}, {"min_tvl": float("inf")}],
)
def test_invalid_thresholds_are_rejected(kwargs):
    with pytest.raises(ValidationError):
        RankRequest(**kwargs)


@pytest.mark.asyncio
async def test_service_survives_secondary_failure(ranking_config):
    service = YieldRankingService(
        ranking_config,
        FakePoolFeed([pool("kamino", apy=12)]),
        FakeSecondaryFeed(error=True),
    )
    ranked = await service.rank(RankRequest(extended=True))

    response = service.to_response(ranked)
    assert response["count"] == 1
    assert response["supported_protocols"] == list(ranking_config.supported_protocols)
    assert response["yields"][0]["protocol"] == "kamino"


@pytest.mark.asyncio
async def test_service_uses_secondary_rows(ranking_config):
    service = YieldRankingService(
        ranking_config,
        FakePoolFeed([pool("kamino", apy=12)]),
        FakeSecondaryFeed([{"asset": "WIF", "apy": 90, "tvl": 200_000}, {"asset": "bad"}]),
    )
    ranked = await service.rank(RankRequest(extended=True))
    assert [o.protocol for o in ranked] == ["pump.fun", "kamino"]
