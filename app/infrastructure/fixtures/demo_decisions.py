"""
Demo decision history
Seeded when SEED_DEMO_DECISIONS is enabled so the audit endpoints have data.
"""

import logging
from typing import List

from app.domain.errors import ConflictError
from app.domain.models import DecisionRecord
from app.domain.stores import DecisionStore

logger = logging.getLogger(__name__)


DEMO_DECISIONS = [
    {
        "id": "1706918400000-rf2k8m",
        "timestamp": 1706918400000,
        "type": "rebalance",
        "confidence": 0.82,
        "executed": True,
        "hasError": False,
        "protocols": ["marinade", "kamino"],
        "assets": ["mSOL", "USDC"],
        "riskChange": "decreased",
        "apyImpact": 4.3,
        "reasoningPreview": (
            "Risk-adjusted analysis: moving from Marinade mSOL (7.2% APY, risk 28) "
            "to Kamino USDC vault (11.5% APY, risk 25)"
        ),
        "fullReasoning": (
            "Risk-Adjusted Analysis\n"
            "Found 12 opportunities within risk tolerance\n\n"
            "Top recommendation: USDC on kamino\n"
            "  Raw APY: 11.50%\n"
            "  Risk-adjusted APY: 9.43%\n"
            "  Risk score: 25/100\n"
            "  TVL: $89.2M\n\n"
            "Current APY 7.20%, projected APY 11.50%\n"
            "Decision: REBALANCE (risk decreased)"
        ),
        "actions": [
            {
                "type": "withdraw",
                "from": {"protocol": "marinade", "asset": "mSOL"},
                "to": None,
                "expectedApyGain": 0.0,
            },
            {
                "type": "deposit",
                "from": None,
                "to": {"protocol": "kamino", "asset": "USDC"},
                "expectedApyGain": 4.3,
            },
        ],
        "txIds": ["5cGz9XnBhPvHmTzYkQrNpqJmvwRsK3kLxMbYdEfA7hJc"],
        "riskAnalysis": {"currentRiskScore": 28, "proposedRiskScore": 25, "riskChange": "decreased"},
    },
    {
        "id": "1706914800000-k4m9q2",
        "timestamp": 1706914800000,
        "type": "hold",
        "confidence": 0.91,
        "executed": False,
        "hasError": False,
        "protocols": ["marinade"],
        "assets": ["mSOL"],
        "riskChange": "unchanged",
        "apyImpact": 0,
        "reasoningPreview": "Decision: HOLD - risk-adjusted improvement (0.3%) below threshold (1%)",
        "fullReasoning": (
            "Risk-Adjusted Analysis\n"
            "Found 8 opportunities within risk tolerance\n\n"
            "Current position: mSOL on Marinade (7.20% APY, risk 28/100)\n"
            "Best alternative: JitoSOL staking (6.9% risk-adjusted)\n\n"
            "Decision: HOLD\n"
            "Improvement of 0.3% is below the 1% rebalance threshold"
        ),
    },
    {
        "id": "1706911200000-p8n3x7",
        "timestamp": 1706911200000,
        "type": "enter",
        "confidence": 0.78,
        "executed": True,
        "hasError": False,
        "protocols": ["marinade"],
        "assets": ["SOL", "mSOL"],
        "riskChange": "increased",
        "apyImpact": 7.2,
        "reasoningPreview": "Portfolio is empty - entering Marinade mSOL staking (7.2% APY, risk 28/100)",
        "fullReasoning": (
            "Risk-Adjusted Analysis\n"
            "Portfolio value: $0.00 (empty)\n\n"
            "1. mSOL on marinade: 7.20% raw, 5.88% risk-adjusted, TVL $412.5M\n"
            "2. USDC on kamino: 11.50% raw, 9.43% risk-adjusted, TVL $89.2M\n\n"
            "Selected Marinade mSOL for risk-adjusted stability"
        ),
        "actions": [
            {
                "type": "swap",
                "from": {"protocol": "marinade", "asset": "SOL"},
                "to": {"protocol": "marinade", "asset": "mSOL"},
                "expectedApyGain": 7.2,
            },
        ],
        "txIds": ["3dKm7xWbPqHnTyYkQrNpqJmvwRsK3kLxMbYdEfA7hJa"],
    },
    {
        "id": "1706907600000-w2m5k9",
        "timestamp": 1706907600000,
        "type": "hold",
        "confidence": 0.95,
        "executed": False,
        "hasError": False,
        "protocols": [],
        "assets": [],
        "riskChange": "unchanged",
        "apyImpact": 0,
        "reasoningPreview": "Decision: HOLD - no opportunities within risk tolerance meet threshold",
    },
]


def demo_records() -> List[DecisionRecord]:
    return [DecisionRecord.from_dict(d) for d in DEMO_DECISIONS]


async def seed_demo_decisions(store: DecisionStore) -> int:
    """Insert demo decisions that are not stored yet; returns how many were added"""
    added = 0
    for record in demo_records():
        try:
            await store.append(record)
        except ConflictError:
            logger.debug("Demo decision %s already present", record.id)
            continue
        added += 1
    logger.info("Seeded %d demo decisions", added)
    return added
