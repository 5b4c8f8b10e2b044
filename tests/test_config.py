import pytest

from nethermind.ingest.config import IngestConfig
from nethermind.ingest.constants import NATIVE_TOKEN_ADDRESS
from nethermind.ingest.context import PipelineContext


@pytest.fixture(name="clean_env")
def fixture_clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # no .env file
    # Set before deleting, so variables loaded from .env files are removed on teardown
    for var in ("DB_URL", "JSON_RPC", "TOKEN_NAME_CACHE_SIZE", "NATIVE_TOKEN_ADDRESS", "NATIVE_TOKEN_NAME"):
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    return monkeypatch


def test_config_defaults(clean_env):
    config = IngestConfig.from_env()

    assert config.db_url is None
    assert config.token_name_cache_size == 4096
    assert config.native_token_address == NATIVE_TOKEN_ADDRESS
    assert config.native_token_name == "REEF"


def test_config_from_environment(clean_env):
    clean_env.setenv("DB_URL", "sqlite:///ledger.db")
    clean_env.setenv("TOKEN_NAME_CACHE_SIZE", "16")
    clean_env.setenv("NATIVE_TOKEN_ADDRESS", "0x00000000000000000000000000000000000000AB")

    config = IngestConfig.from_env()

    assert config.db_url == "sqlite:///ledger.db"
    assert config.token_name_cache_size == 16
    assert config.native_token_address == "0x00000000000000000000000000000000000000ab"


def test_config_from_dotenv_file(clean_env, tmp_path):
    (tmp_path / ".env").write_text("JSON_RPC=http://localhost:9933\n")

    assert IngestConfig.from_env().json_rpc == "http://localhost:9933"


@pytest.mark.parametrize("cache_size", ["0", "-1", "many"])
def test_invalid_cache_size(clean_env, cache_size):
    clean_env.setenv("TOKEN_NAME_CACHE_SIZE", cache_size)

    with pytest.raises(ValueError):
        IngestConfig.from_env()


def test_pipeline_context_from_config():
    config = IngestConfig(token_name_cache_size=2, native_token_address="0x00000000000000000000000000000000000000AB")

    context = PipelineContext.from_config(config)

    assert context.last_known_era is None
    assert context.native_token_address == "0x00000000000000000000000000000000000000ab"
    for address in ("0x01", "0x02", "0x03"):
        context.token_names.set(address, "Token")
    assert len(context.token_names) == 2
    assert "0x01" not in context.token_names
