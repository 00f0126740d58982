"""
Configuration Tests.
"""

import pytest

from provider_risk import (
    RiskLevel,
    RiskScoringConfig,
    RiskScoringEngine,
    get_config_from_env,
    get_conservative_config,
    get_default_config,
)


class TestPresets:
    """Tests for configuration presets."""

    def test_default_thresholds(self):
        config = get_default_config()

        assert config.levels.critical == 70
        assert config.levels.high == 40
        assert config.levels.medium == 20
        assert config.performance.completion_rate_floor_pct == 80.0
        assert config.incidents.penalty_cap == 20

    def test_conservative_escalates_earlier(self):
        default = get_default_config()
        conservative = get_conservative_config()

        assert conservative.levels.critical < default.levels.critical
        assert conservative.levels.high < default.levels.high
        assert conservative.performance.completion_rate_floor_pct > default.performance.completion_rate_floor_pct

    def test_conservative_engine_scores_higher(self, make_snapshot):
        snapshot = make_snapshot(total=10, completed=8, cancelled=2, incidents=2, unresolved=2)

        default = RiskScoringEngine(get_default_config()).assess(snapshot)
        conservative = RiskScoringEngine(get_conservative_config()).assess(snapshot)

        # 80% completion passes the default floor but not the conservative one
        assert default.risk_score == 10
        assert conservative.risk_score == 15 + 10 + 20
        assert conservative.risk_level == RiskLevel.HIGH

    def test_to_dict_is_complete(self):
        data = RiskScoringConfig().to_dict()

        assert set(data) == {
            "levels", "verification", "performance", "trust",
            "incidents", "rules", "engine_version",
        }
        assert data["levels"] == {"medium": 20, "high": 40, "critical": 70}
        assert data["trust"]["low_penalty"] == 20

    def test_configs_are_immutable(self):
        config = get_default_config()

        with pytest.raises(Exception):
            config.levels.critical = 10


class TestConfigFromEnv:
    """Tests for get_config_from_env()."""

    def test_defaults_without_profile(self, monkeypatch):
        monkeypatch.delenv("RISK_SCORING_PROFILE", raising=False)

        assert get_config_from_env() == get_default_config()

    def test_conservative_profile(self, monkeypatch):
        monkeypatch.setenv("RISK_SCORING_PROFILE", "Conservative")

        assert get_config_from_env() == get_conservative_config()

    def test_unknown_profile_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("RISK_SCORING_PROFILE", "reckless")

        with caplog.at_level("WARNING"):
            config = get_config_from_env()

        assert config == get_default_config()
        assert "reckless" in caplog.text
