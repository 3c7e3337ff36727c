"""
Integration tests for the yield ranking endpoint
"""

import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]

POOLS = [
    {"pool": "p-kamino", "chain": "Solana", "project": "kamino-lend", "symbol": "USDC",
     "tvlUsd": 25_000_000, "apy": 8.123, "stablecoin": True, "ilRisk": "no"},
    {"pool": "p-drift", "chain": "Solana", "project": "drift", "symbol": "SOL",
     "tvlUsd": 4_000_000, "apy": 62.0, "stablecoin": False, "ilRisk": "no"},
    {"pool": "p-raydium", "chain": "Solana", "project": "raydium-amm", "symbol": "SOL-USDC",
     "tvlUsd": 9_000_000, "apy": 35.0, "stablecoin": False, "ilRisk": "yes"},
    {"pool": "p-small", "chain": "Solana", "project": "orca", "symbol": "BONK",
     "tvlUsd": 40_000, "apy": 120.0, "stablecoin": False, "ilRisk": "yes"},
    {"pool": "p-eth", "chain": "Ethereum", "project": "kamino-lend", "symbol": "USDC",
     "tvlUsd": 90_000_000, "apy": 9.0, "stablecoin": True, "ilRisk": "no"},
]


@pytest.fixture(autouse=True)
def feed_pools(pool_feed):
    pool_feed.pools = POOLS
    return pool_feed


async def test_default_ranking(client: AsyncClient):
    response = await client.get("/api/yields")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert data["supported_protocols"] == ["kamino", "drift", "jito", "marinade", "orca", "lulo"]
    assert data["yields"] == [
        {"protocol": "drift", "asset": "SOL", "apy": 62.0, "tvl": 4000000,
         "risk": "high", "supported": True, "pool": "p-drift"},
        {"protocol": "kamino-lend", "asset": "USDC", "apy": 8.12, "tvl": 25000000,
         "risk": "low", "supported": True, "pool": "p-kamino"},
    ]


async def test_extended_adds_read_only_and_trading_fee_rows(client: AsyncClient, secondary_feed):
    secondary_feed.rows = [{"asset": "WIF", "apy": 48.5, "tvl": 750_000}]

    data = (await client.get("/api/yields", params={"extended": "true"})).json()

    assert [(y["protocol"], y["supported"]) for y in data["yields"]] == [
        ("drift", True),
        ("pump.fun", False),
        ("raydium-amm", False),
        ("kamino-lend", True),
    ]
    assert data["yields"][1]["risk"] == "high"
    assert data["yields"][2]["risk"] == "high"


async def test_thresholds_from_query(client: AsyncClient):
    data = (await client.get("/api/yields", params={"minApy": 10, "minTvl": 10_000})).json()

    assert [y["pool"] for y in data["yields"]] == ["p-small", "p-drift"]


async def test_upstream_failure(client: AsyncClient, pool_feed):
    pool_feed.error = True

    response = await client.get("/api/yields")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch yields"}


async def test_secondary_failure_is_not_fatal(client: AsyncClient, secondary_feed):
    secondary_feed.error = True

    response = await client.get("/api/yields", params={"extended": "true"})

    assert response.status_code == 200
    assert "pump.fun" not in {y["protocol"] for y in response.json()["yields"]}


@pytest.mark.parametrize(
    "params",
    [{"minApy": -1}, {"minTvl": -100}, {"minApy": "lots"}, {"minApy": "inf"}, {"minTvl": "nan"}],
)
async def test_invalid_thresholds(client: AsyncClient, params):
    response = await client.get("/api/yields", params=params)

    assert response.status_code == 400
    assert "error" in response.json()
