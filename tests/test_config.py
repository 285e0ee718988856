import logging

import pytest
from lartpc_geometry.config import GeometryConfig, load_config, DEFAULT_SORT_TOLERANCE
from lartpc_geometry.logging_config import setup_logging

ENV_KEYS = ["LARTPC_GEO_SORT_TOLERANCE", "LARTPC_GEO_QUERY_TOLERANCE", "LARTPC_GEO_WIGGLE",
            "LARTPC_GEO_AUX_DET_PREFIX", "LARTPC_GEO_AUX_DET_SENSITIVE_PREFIX"]

@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        # recorded first so values loaded from .env files are removed afterwards
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    # keep load_dotenv from finding a stray .env in the working directory
    monkeypatch.chdir(tmp_path)
    return monkeypatch

def test_defaults(clean_env):
    config = load_config()
    assert config.sort_tolerance == DEFAULT_SORT_TOLERANCE
    assert config.query_tolerance == 0.0
    assert config.wiggle == 1.0
    assert config.aux_det_prefix == "volAuxDet"

def test_environment_values(clean_env):
    clean_env.setenv("LARTPC_GEO_SORT_TOLERANCE", "0.01")
    clean_env.setenv("LARTPC_GEO_AUX_DET_PREFIX", "volPaddle")
    config = load_config()
    assert config.sort_tolerance == 0.01
    assert config.aux_det_prefix == "volPaddle"

def test_env_file(clean_env, tmp_path):
    env_file = tmp_path / "geometry.env"
    env_file.write_text("LARTPC_GEO_WIGGLE=1.5\n")
    assert load_config(str(env_file)).wiggle == 1.5

def test_overrides_win(clean_env):
    clean_env.setenv("LARTPC_GEO_QUERY_TOLERANCE", "0.5")
    config = load_config(query_tolerance=0.25, wiggle=None)
    assert config.query_tolerance == 0.25
    assert config.wiggle == 1.0

def test_bad_environment_value(clean_env):
    clean_env.setenv("LARTPC_GEO_WIGGLE", "lots")
    with pytest.raises(ValueError, match="LARTPC_GEO_WIGGLE"):
        load_config()

@pytest.mark.parametrize("kwargs", [{"wiggle": 0.9}, {"sort_tolerance": -1.0}, {"query_tolerance": -0.1}])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        GeometryConfig(**kwargs)

def test_from_dict_ignores_unknown_keys():
    config = GeometryConfig.from_dict({"wiggle": 1.2, "color": "blue"})
    assert config.wiggle == 1.2
    assert GeometryConfig.from_dict(config.to_dict()).to_dict() == config.to_dict()

def test_setup_logging(tmp_path):
    log_file = tmp_path / "geometry.log"
    logger = setup_logging(logging.DEBUG, log_file=str(log_file))
    try:
        logging.getLogger("lartpc_geometry.hierarchy").debug("sorted")
        for handler in logger.handlers:
            handler.flush()
        assert "sorted" in log_file.read_text()
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

def test_setup_logging_accepts_level_names():
    logger = setup_logging("warning")
    try:
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        with pytest.raises(ValueError, match="chatty"):
            setup_logging("chatty")
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
