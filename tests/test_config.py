# tests/test_config.py
"""
Tests for architecture descriptions, analysis configuration and logging
setup.
"""

import json
import logging

import pytest

import l2_liveness.config as config_module
from l2_liveness.architecture import X86_64, Architecture, get_architecture
from l2_liveness.config import AnalysisConfig, configure_logging, load_config
from l2_liveness.dataflow_engine import IterationOrder
from l2_liveness.errors import ConfigurationError, ErrorCodes


class TestArchitecture:

    def test_x86_64_is_consistent(self):
        assert X86_64.validate() == []

    def test_untracked(self):
        assert X86_64.untracked == frozenset({"rsp", "print", "allocate", "array-error"})

    def test_argument_window(self):
        assert X86_64.argument_registers_for(0) == ()
        assert X86_64.argument_registers_for(3) == ("rdi", "rsi", "rdx")
        assert X86_64.argument_registers_for(9) == X86_64.argument_registers

    def test_lookup(self):
        assert get_architecture("x86-64") is X86_64
        with pytest.raises(ConfigurationError, match="unknown architecture"):
            get_architecture("arm64")

    def test_round_trip_through_dict(self):
        assert Architecture.from_dict(X86_64.to_dict()) == X86_64

    def test_from_dict_missing_keys(self):
        with pytest.raises(ConfigurationError) as info:
            Architecture.from_dict({"name": "half"})
        assert "missing registers" in info.value.problems

    def test_from_dict_overlap(self):
        data = X86_64.to_dict()
        data["callee_saved"] = data["callee_saved"] + ["rax"]
        with pytest.raises(ConfigurationError, match="both caller- and callee-saved"):
            Architecture.from_dict(data)


class TestAnalysisConfig:

    def test_defaults(self):
        config = AnalysisConfig()
        assert config.architecture is X86_64
        assert config.order is IterationOrder.REVERSE
        assert config.validate() == []

    def test_from_dict(self):
        config = AnalysisConfig.from_dict(
            {"order": "forward", "check_fixpoint": True}
        )
        assert config.order is IterationOrder.FORWARD
        assert config.check_fixpoint
        assert not config.skip_failed_functions

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError) as info:
            AnalysisConfig.from_dict({"widen": True})
        assert info.value.code == ErrorCodes.INVALID_CONFIGURATION
        assert info.value.problems == ["widen"]

    def test_from_dict_bad_order(self):
        with pytest.raises(ConfigurationError, match="iteration order"):
            AnalysisConfig.from_dict({"order": "random"})

    @pytest.mark.parametrize("key", ["check_fixpoint", "skip_failed_functions"])
    @pytest.mark.parametrize("value", ["no", "false", 1, None])
    def test_flags_must_be_booleans(self, key, value):
        with pytest.raises(ConfigurationError, match=key) as info:
            AnalysisConfig.from_dict({key: value})
        assert info.value.problems == [key]

    def test_inline_architecture(self):
        data = X86_64.to_dict()
        data["name"] = "x86-64-narrow"
        data["argument_window"] = 4
        config = AnalysisConfig.from_dict({"architecture": data})
        assert config.architecture.argument_window == 4


class TestLoadConfig:

    def test_load(self, tmp_path):
        path = tmp_path / "liveness.json"
        path.write_text(json.dumps({"architecture": "x86-64", "order": "reverse"}))
        assert load_config(path) == AnalysisConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="cannot read"):
            load_config(tmp_path / "absent.json")

    def test_bad_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{order: ")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_config(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError, match="JSON object"):
            load_config(path)


class TestLogging:

    @pytest.mark.parametrize(
        "verbosity, level",
        [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
    )
    def test_levels(self, verbosity, level):
        configure_logging(verbosity)
        assert logging.getLogger("l2_liveness").level == level

    def test_handler_not_duplicated(self):
        configure_logging(1)
        configure_logging(2)
        handlers = logging.getLogger("l2_liveness").handlers
        assert sum(h is config_module._handler for h in handlers) == 1
        streams = [h for h in handlers if isinstance(h, logging.StreamHandler)]
        assert streams == [config_module._handler]
