import logging
import unittest

import numpy as np
import pytest

from indicator_engine import config as config_module
from indicator_engine.config import BaseConfig, DevelopmentConfig, ProductionConfig, TestConfig, get_config
from indicator_engine.contracts import ParamSpec, ValidationError
from indicator_engine.indicators.definitions import INDICATOR_UNIVERSE, IndicatorDefinition
from indicator_engine.indicators.registry import get_registry, inject_registry, IndicatorRegistry
from indicator_engine.indicators.rolling import WindowPolicy
from indicator_engine.indicators.trend import sma
from indicator_engine.shared import logger as logger_module
from indicator_engine.shared.logger import get_logger, setup_main_logging, stop_main_logging


# ============================================
# Config
# ============================================
@pytest.mark.parametrize("env, cls", [
    ("development", DevelopmentConfig),
    ("production", ProductionConfig),
    ("test", TestConfig),
    ("default", BaseConfig),
    ("unknown", BaseConfig),
])
def test_get_config_by_env(env, cls):
    assert type(get_config(env)) is cls


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("OUTPUT_ROUND_DIGITS", "4")
    monkeypatch.setenv("DEFAULT_WINDOW_POLICY", "zero_fill")
    cfg = get_config()
    assert isinstance(cfg, TestConfig)
    assert cfg.LOG_DIR == tmp_path
    assert cfg.PARALLEL_ENABLED is False
    assert cfg.DEFAULT_WINDOW_POLICY == "zero_fill"
    assert get_config("default").OUTPUT_ROUND_DIGITS == 4


def test_default_window_policy_is_read_at_call_time(monkeypatch):
    values = [10.0, 11.0, 9.0, 12.0]
    assert sma(values, {"period": 3}).primary.values[0] == 10.0
    monkeypatch.setattr(config_module.config, "DEFAULT_WINDOW_POLICY", WindowPolicy.ZERO_FILL.value)
    assert sma(values, {"period": 3}).primary.values[0] == pytest.approx(10 / 3)


# ============================================
# ParamSpec
# ============================================
def test_param_spec_numeric_bounds():
    spec = ParamSpec("period", "int", min=1, max=10)
    assert spec.validate(5) == 5
    for bad in (0, 11, 2.0, True, None):
        with pytest.raises(ValidationError):
            spec.validate(bad)


def test_param_spec_accepts_numpy_scalars():
    period = ParamSpec("period", "int", min=1, max=10).validate(np.int64(5))
    assert period == 5 and type(period) is int
    ratio = ParamSpec("ratio", "float", min=0.0).validate(np.float32(1.5))
    assert ratio == 1.5 and type(ratio) is float
    assert ParamSpec("ratio", "float").validate(np.int32(2)) == 2
    for bad in (np.int64(0), np.float64(2.0), np.bool_(True)):
        with pytest.raises(ValidationError):
            ParamSpec("period", "int", min=1, max=10).validate(bad)
    assert sma([1.0, 2.0, 3.0], {"period": np.int64(2)}).primary.values[-1] == 2.5


def test_param_spec_enum_coercion():
    spec = ParamSpec("window_policy", "categorical", enum_cls=WindowPolicy)
    assert spec.validate("zero_fill") is WindowPolicy.ZERO_FILL
    with pytest.raises(ValidationError):
        spec.validate("lookahead")


def test_param_spec_choices_and_bool():
    assert ParamSpec("mode", "categorical", choices=["a", "b"]).validate("a") == "a"
    with pytest.raises(ValidationError):
        ParamSpec("mode", "categorical", choices=["a", "b"]).validate("c")
    assert ParamSpec("flag", "bool").validate(False) is False
    with pytest.raises(ValidationError):
        ParamSpec("flag", "bool").validate(1)


# ============================================
# Logging
# ============================================
@pytest.fixture
def isolated_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    stop_main_logging()
    for h in root.handlers[:]:
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_queue_logging_writes_error_log(isolated_root_logger, monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    q = setup_main_logging()
    assert setup_main_logging() is q

    log = get_logger("indicator.test")
    log.info("[Test] info line")
    log.error("[Test] something broke")
    stop_main_logging()

    assert logger_module._listener is None
    assert "[Test] info line" in (tmp_path / "app.log").read_text(encoding="utf-8")
    error_text = (tmp_path / "error.log").read_text(encoding="utf-8")
    assert "[Test] something broke" in error_text
    assert "info line" not in error_text


# ============================================
# Registry contracts
# ============================================
class TestRegistryContracts(unittest.TestCase):
    """
    Registry Contract Tests
    CompositionGraph resolves nodes and output keys through these definitions.
    """

    @classmethod
    def setUpClass(cls):
        cls.registry = get_registry()
        cls.registry.initialize()

    def test_every_definition_declares_outputs(self):
        missing = [d.id for d in self.registry.list_all() if not d.outputs]
        self.assertFalse(missing, f"Definitions missing outputs: {missing}")

    def test_ids_are_upper_case_keys(self):
        for key, definition in INDICATOR_UNIVERSE.items():
            self.assertEqual(key, definition.id)
            self.assertEqual(key, key.upper())

    def test_default_configs_build(self):
        for definition in self.registry.list_all():
            definition.make_config()

    def test_param_spec_defaults_match_config_fields(self):
        for definition in self.registry.list_all():
            if definition.config_cls is None:
                continue
            cfg = definition.make_config()
            for spec in definition.config_cls.PARAMS:
                if spec.default is None:
                    continue
                self.assertEqual(
                    spec.default, getattr(cfg, spec.name),
                    f"{definition.id}.{spec.name}: spec default {spec.default} != field default",
                )

    def test_lookup_is_case_insensitive(self):
        self.assertIs(self.registry.get("rsi"), self.registry.get("RSI"))
        self.assertIn("ema", self.registry)

    def test_categories(self):
        categories = {d.category for d in self.registry.list_all()}
        self.assertEqual(categories, {"trend", "momentum", "volatility", "volume"})
        self.assertIn("RSI", [d.id for d in self.registry.list_by_category("momentum")])


def test_register_custom_indicator(fresh_registry):
    custom = IndicatorDefinition(
        id="SMA_FAST", name="Fast SMA", category="trend", description="SMA with a 3-bar default.",
        compute=lambda source, cfg: sma(source, {"period": 3}), outputs=["sma"],
    )
    fresh_registry.register(custom)
    assert "SMA_FAST" in fresh_registry
    with pytest.raises(ValidationError):
        fresh_registry.register(custom)
    fresh_registry.register(custom, overwrite=True)


def test_register_rejects_unknown_input_kind(fresh_registry):
    bad = IndicatorDefinition(id="X", name="x", category="trend", description="", compute=sma, input_kind="tick")
    with pytest.raises(ValidationError):
        fresh_registry.register(bad)


def test_inject_registry_replaces_singleton(fresh_registry):
    custom = IndicatorRegistry()
    inject_registry(custom)
    try:
        assert get_registry() is custom
        assert len(custom) == 0
    finally:
        inject_registry(fresh_registry)
