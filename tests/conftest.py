"""
Shared test fixtures for Crashwatch test suite.
"""

import logging

import pytest

from crashwatch.config.logging import clear_evaluation_context
from crashwatch.config.settings import clear_settings_cache
from crashwatch.risk.engine import CrashRiskEngine, get_default_engine
from crashwatch.risk.indicators import IndicatorKind
from crashwatch.risk.model import load_risk_model


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep environment-driven settings and cached engines out of each test."""
    for name in ("RISK_MODEL_PATH", "LOG_LEVEL", "LOG_JSON", "ENVIRONMENT"):
        monkeypatch.delenv(f"CRASHWATCH_{name}", raising=False)
    clear_settings_cache()
    get_default_engine.cache_clear()
    yield
    clear_settings_cache()
    get_default_engine.cache_clear()
    clear_evaluation_context()


@pytest.fixture
def restore_root_logger():
    """Undo configure_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(scope="session")
def risk_model():
    """Packaged default risk model."""
    return load_risk_model()


@pytest.fixture
def engine(risk_model):
    """Engine on the packaged model, without metrics."""
    return CrashRiskEngine(risk_model)


@pytest.fixture
def scenario_values():
    """
    Reference market snapshot: CAPE in danger, Buffett in warning,
    margin debt unavailable, everything else safe.
    """
    return {
        IndicatorKind.CAPE: 38.0,
        IndicatorKind.YIELD_CURVE: 0.5,
        IndicatorKind.MARGIN_DEBT: None,
        IndicatorKind.CREDIT_SPREAD: 4.2,
        IndicatorKind.BUFFETT_INDICATOR: 145.0,
        IndicatorKind.VOLATILITY_INDEX: 18.0,
    }


@pytest.fixture
def scenario_readings(engine, scenario_values):
    return [engine.reading(kind, value) for kind, value in scenario_values.items()]


@pytest.fixture
def danger_readings(engine, risk_model):
    """Every indicator exactly at its danger level."""
    return [
        engine.reading(kind, reading.danger_level)
        for kind, reading in risk_model.defaults.items()
    ]
