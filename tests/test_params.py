"""Tests for protocol parameters, score bands and parameter loading."""

import json

import pytest

from config.params import (
    LIQUIDATION, PARAMS_FILE_ENV, PROTOCOL, SCORE_BANDS,
    ConfigError, LiquidationParams, MarketShockParams, PortfolioParams, ProtocolParams,
    ScoreBand, SimulationConfig, load_params, terms_for_score,
)


class TestDefaults:
    def test_liquidation_defaults(self):
        assert LIQUIDATION.threshold_bps == 8800
        assert LIQUIDATION.close_factor_bps == 5000
        assert LIQUIDATION.bonus_bps == 800

    def test_protocol_snapshot(self):
        assert PROTOCOL.liquidation == LIQUIDATION
        assert PROTOCOL.score_bands == SCORE_BANDS
        assert SCORE_BANDS[-1].min_score == 0

    def test_frozen(self):
        with pytest.raises(AttributeError):
            LIQUIDATION.threshold_bps = 9000


class TestTermsForScore:
    @pytest.mark.parametrize("score,expected", [
        (1000, (8500, 500)),
        (925, (8500, 500)),
        (851, (8500, 500)),
        (850, (7500, 700)),
        (700, (7500, 700)),
        (699, (6500, 1000)),
        (400, (6500, 1000)),
        (399, (5000, 1500)),
        (0, (5000, 1500)),
    ])
    def test_band_lookup(self, score, expected):
        assert terms_for_score(score) == expected

    def test_first_match_wins(self):
        bands = (ScoreBand(100, 7000, 800), ScoreBand(50, 9000, 100), ScoreBand(0, 4000, 2000))
        assert terms_for_score(150, bands) == (7000, 800)


class TestValidation:
    def test_missing_fallback_band(self):
        with pytest.raises(ConfigError):
            ProtocolParams(score_bands=(ScoreBand(400, 6500, 1000),))

    def test_empty_bands(self):
        with pytest.raises(ConfigError):
            ProtocolParams(score_bands=())

    def test_bps_out_of_range(self):
        with pytest.raises(ConfigError):
            LiquidationParams(threshold_bps=12_000)
        with pytest.raises(ConfigError):
            LiquidationParams(bonus_bps=-1)

    def test_bps_must_be_integers(self):
        with pytest.raises(ConfigError):
            LiquidationParams(threshold_bps=8800.5)
        with pytest.raises(ConfigError):
            LiquidationParams(bonus_bps=True)
        with pytest.raises(ConfigError):
            ProtocolParams(score_bands=(ScoreBand(0, 5000, 1500.0),))
        with pytest.raises(ConfigError):
            ProtocolParams(score_bands=(ScoreBand(0, 12_000, 1500),))

    def test_market_params(self):
        with pytest.raises(ConfigError):
            MarketShockParams(periods_per_year=0)
        with pytest.raises(ConfigError):
            MarketShockParams(jump_probability=1.5)
        with pytest.raises(ConfigError):
            MarketShockParams(volatility=-0.1)

    def test_portfolio_validate(self):
        PortfolioParams().validate()
        with pytest.raises(ConfigError):
            PortfolioParams(borrower_count=0).validate()
        with pytest.raises(ConfigError):
            PortfolioParams(score_weights=(0.0, 0.0)).validate()
        with pytest.raises(ConfigError):
            PortfolioParams(score_weights=(1.0, -0.5)).validate()

    def test_sim_config_validate(self):
        with pytest.raises(ConfigError):
            SimulationConfig(periods=0).validate()

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestLoadParams:
    def setup_method(self):
        self.overrides = {
            "liquidation": {"threshold_bps": 8500},
            "market": {"volatility": 0.6},
            "portfolio": {"borrower_count": 25, "score_weights": [0.1, 0.2, 0.3, 0.4]},
            "simulation": {"periods": 30},
            "targets": {"max_liquidation_frequency": 0.1},
        }

    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.delenv(PARAMS_FILE_ENV, raising=False)
        params = load_params()
        assert params["source"] == "defaults"
        assert params["protocol"] == PROTOCOL
        assert params["sim_config"].periods == 90
        assert params["portfolio"].borrower_count == 100

    def test_file_overrides(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps(self.overrides))
        params = load_params(path)
        assert params["protocol"].liquidation.threshold_bps == 8500
        assert params["protocol"].liquidation.close_factor_bps == 5000
        assert params["market"].volatility == 0.6
        assert params["sim_config"].market.volatility == 0.6
        assert params["sim_config"].periods == 30
        assert params["portfolio"].borrower_count == 25
        assert params["portfolio"].score_weights == (0.1, 0.2, 0.3, 0.4)
        assert params["targets"].max_liquidation_frequency == 0.1
        assert params["source"] == str(path)

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "env_params.json"
        path.write_text(json.dumps({"liquidation": {"bonus_bps": 600}}))
        monkeypatch.setenv(PARAMS_FILE_ENV, str(path))
        assert load_params()["protocol"].liquidation.bonus_bps == 600

    def test_custom_score_bands(self, tmp_path):
        path = tmp_path / "bands.json"
        path.write_text(json.dumps({"score_bands": [
            {"min_score": 600, "ltv_bps": 8000, "interest_rate_bps": 600},
            {"min_score": 0, "ltv_bps": 5500, "interest_rate_bps": 1200},
        ]}))
        bands = load_params(path)["protocol"].score_bands
        assert len(bands) == 2
        assert bands[0] == ScoreBand(600, 8000, 600)

    @pytest.mark.parametrize("payload", [
        {"score_bands": [{"min_score": 300, "ltv_bps": 6000, "interest_rate_bps": 900}]},
        {"portfolio": {"score_weights": [0, 0, 0, 0]}},
        {"portfolio": {"borrower_count": 0}},
        {"simulation": {"periods": -5}},
        {"liquidation": {"unknown_knob": 1}},
        {"liquidation": {"threshold_bps": 8800.5}},
        {"liquidation": {"close_factor_bps": True}},
        {"score_bands": [{"min_score": 0, "ltv_bps": 5000.5, "interest_rate_bps": 1500}]},
        {"score_bands": [{"min_score": 0, "ltv_bps": 5000, "interest_rate_bps": 15.5}]},
        {"simulation": {"market": {}}},
        ["not", "an", "object"],
    ])
    def test_invalid_payloads(self, tmp_path, payload):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(payload))
        with pytest.raises(ConfigError):
            load_params(path)

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            load_params(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_params(tmp_path / "missing.json")
