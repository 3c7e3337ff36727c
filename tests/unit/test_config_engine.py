from pathlib import Path

import pytest

from app.domain.services.config_engine import ConfigEngine, YieldRankingConfig


@pytest.mark.unit
def test_config_engine_loads_repo_config():
    config_dir = Path(__file__).resolve().parents[2] / "config"
    engine = ConfigEngine(config_dir)
    engine.load_all()

    ranking = engine.yield_ranking
    assert ranking.chain == "Solana"
    assert ranking.supported_protocols == ("kamino", "drift", "jito", "marinade", "orca", "lulo")
    assert "raydium" in ranking.extended_protocols
    assert (ranking.max_results, ranking.max_results_extended) == (20, 50)
    assert ranking.default_min_tvl == 100000

    assert engine.verification.name == "SOLPRISM"
    assert engine.audit.replay_context_size == 5
    assert engine.audit.compliance.to_dict()["dataRetentionPolicy"] == "90 days rolling"
    assert engine.get_app_setting("audit", "export_version") == "1.0.0"


@pytest.mark.unit
def test_getters_fail_before_load(tmp_path):
    engine = ConfigEngine(tmp_path)
    with pytest.raises(RuntimeError):
        _ = engine.yield_ranking


@pytest.mark.unit
def test_missing_config_file_fails_fast(tmp_path):
    (tmp_path / "app.yml").write_text("verification: {}\n")
    engine = ConfigEngine(tmp_path)
    with pytest.raises(FileNotFoundError):
        engine.load_all()


@pytest.mark.unit
def test_non_mapping_config_fails_fast(tmp_path):
    (tmp_path / "app.yml").write_text("- just\n- a list\n")
    engine = ConfigEngine(tmp_path)
    with pytest.raises(ValueError):
        engine.load_all()


@pytest.mark.unit
def test_overlapping_allow_lists_are_rejected():
    with pytest.raises(ValueError, match="both supported and extended"):
        YieldRankingConfig(
            chain="Solana",
            supported_protocols=("kamino",),
            extended_protocols=("kamino",),
            max_results=20,
            max_results_extended=50,
            default_min_tvl=100000,
            high_apy_threshold=50,
            medium_apy_threshold=20,
            secondary_protocol="pump.fun",
            secondary_pool="meme-trading",
        )
