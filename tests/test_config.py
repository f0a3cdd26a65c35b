"""Tests for configuration, the command line entry point and logging setup."""

import logging

import pytest

import main as cli
from config import DEFAULT_STRATEGIES, SimulationConfig
from logger import get_logger, setup_logger

ENV_VARS = ["N_DISPLAYED", "NUM_DAYS", "CUSTOMERS_PER_DAY", "SEED", "STRATEGIES",
            "STORES_CSV", "CUSTOMERS_CSV", "OUTPUT_DIR", "LOG_LEVEL", "LOG_TO_FILE"]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv("SURPLUS_" + name, raising=False)
    return str(tmp_path / "missing.env")


class TestSimulationConfig:

    def test_defaults(self, clean_env):
        config = SimulationConfig.from_env(clean_env)
        assert config.n_displayed == 5
        assert config.num_days == 7
        assert config.customers_per_day == 100
        assert config.seed == 12345
        assert config.strategies == DEFAULT_STRATEGIES
        assert config.stores_csv is None
        config.validate()

    def test_environment_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("SURPLUS_N_DISPLAYED", "3")
        monkeypatch.setenv("SURPLUS_NUM_DAYS", "2")
        monkeypatch.setenv("SURPLUS_SEED", "none")
        monkeypatch.setenv("SURPLUS_STRATEGIES", "Baseline, Harmony")
        monkeypatch.setenv("SURPLUS_LOG_LEVEL", "debug")
        monkeypatch.setenv("SURPLUS_LOG_TO_FILE", "yes")

        config = SimulationConfig.from_env(clean_env)

        assert config.n_displayed == 3
        assert config.num_days == 2
        assert config.seed is None
        assert config.strategies == ["Baseline", "Harmony"]
        assert config.log_level == "DEBUG"
        assert config.log_to_file is True

    def test_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SURPLUS_CUSTOMERS_PER_DAY=42\n", encoding="utf-8")
        try:
            assert SimulationConfig.from_env(str(env_file)).customers_per_day == 42
        finally:
            import os
            os.environ.pop("SURPLUS_CUSTOMERS_PER_DAY", None)

    @pytest.mark.parametrize("changes", [
        {"strategies": ["Baseline", "Nope"]},
        {"strategies": []},
        {"num_days": 0},
        {"customers_per_day": -1},
        {"n_displayed": -2},
    ])
    def test_validate_rejects(self, changes):
        config = SimulationConfig(**changes)
        with pytest.raises(ValueError):
            config.validate()


class TestMain:

    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch, clean_env):
        monkeypatch.setattr(cli, "configure_module_loggers",
                            lambda *args, **kwargs: logging.getLogger("surplus_market.test"))

    def test_runs_and_writes_report(self, tmp_path):
        out = tmp_path / "out"
        code = cli.main(["--days", "1", "--customers-per-day", "5", "--strategies", "Baseline,Amer",
                         "--output-dir", str(out), "--seed", "3", "--quiet"])
        assert code == 0
        assert (out / "comparison_report.txt").exists()
        assert (out / "Amer_results.csv").exists()

    def test_unknown_strategy_exit_code(self, tmp_path):
        assert cli.main(["--strategies", "Nope", "--output-dir", str(tmp_path), "--quiet"]) == 2

    def test_missing_stores_file_exit_code(self, tmp_path):
        code = cli.main(["--stores", str(tmp_path / "none.csv"), "--days", "1",
                         "--output-dir", str(tmp_path), "--quiet"])
        assert code == 1

    def test_flags_override_config(self):
        args = cli.build_parser().parse_args(["-n", "4", "--strategies", "Sama, Ziad", "--log-file"])
        config = cli.apply_args(SimulationConfig(), args)
        assert config.n_displayed == 4
        assert config.strategies == ["Sama", "Ziad"]
        assert config.log_to_file is True
        assert config.num_days == 7


class TestLogger:

    def test_setup_is_idempotent(self):
        logger = setup_logger("surplus_market.idempotent", logging.WARNING)
        logger = setup_logger("surplus_market.idempotent", logging.WARNING)
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_file_handler(self, tmp_path):
        logger = setup_logger("surplus_market.file", logging.INFO, log_to_file=True, log_dir=str(tmp_path))
        try:
            assert len(logger.handlers) == 2
            assert list(tmp_path.glob("simulation_*.log"))
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_get_logger_configures_once(self):
        logger = get_logger("surplus_market.lazy")
        assert get_logger("surplus_market.lazy") is logger
        assert len(logger.handlers) == 1
