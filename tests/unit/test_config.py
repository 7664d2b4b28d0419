import pytest
from pydantic import ValidationError

from browser_pilot.agent.settings import AgentSettings
from browser_pilot.config import PilotConfig
from browser_pilot.exceptions import AgentConfigurationError

from conftest import ScriptedLLM

def test_defaults():
    config = PilotConfig()
    assert config.max_iterations == 50
    assert config.max_conversation_messages == 100
    assert config.max_consecutive_errors == 5
    assert config.max_total_errors == 15
    assert config.max_validation_attempts == 3
    assert (config.retry_max_attempts, config.retry_initial_delay, config.retry_backoff_factor) == (3, 1.0, 2.0)

def test_from_env_reads_pilot_variables(monkeypatch):
    monkeypatch.setenv("PILOT_MAX_ITERATIONS", "7")
    monkeypatch.setenv("PILOT_VISION", "true")
    monkeypatch.setenv("PILOT_LOGGING_LEVEL", "DEBUG")
    monkeypatch.setenv("PILOT_SEARCH_PROVIDER", "bing")

    config = PilotConfig.from_env(dotenv=False, headless=False)

    assert config.max_iterations == 7
    assert config.vision is True
    assert config.logging_level == "debug"
    assert config.search_provider == "bing"
    assert config.headless is False

def test_invalid_values_raise_configuration_error(monkeypatch):
    monkeypatch.setenv("PILOT_MAX_ITERATIONS", "zero")
    with pytest.raises(AgentConfigurationError):
        PilotConfig.from_env(dotenv=False)

def test_from_env_reads_dotenv_file(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("PILOT_MAX_TOTAL_ERRORS=4\nPILOT_BROWSER=firefox\nPILOT_SETUP_LOGGING=false\n")
    monkeypatch.chdir(tmp_path)

    config = PilotConfig.from_env()

    assert config.max_total_errors == 4
    assert config.browser_name == "firefox"
    assert config.setup_logging is False

def test_from_env_without_dotenv_ignores_the_file(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("PILOT_MAX_TOTAL_ERRORS=4\n")
    monkeypatch.chdir(tmp_path)

    assert PilotConfig.from_env(dotenv=False).max_total_errors == 15

def test_keyword_arguments_override_environment(monkeypatch):
    monkeypatch.setenv("PILOT_MAX_ITERATIONS", "7")
    monkeypatch.setenv("PILOT_PROXY", "")

    config = PilotConfig(max_iterations=9)

    assert config.max_iterations == 9
    assert config.proxy is None

def test_unknown_pilot_setting_in_dotenv_is_rejected(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("PILOT_MAX_ITERATONS=4\n")
    monkeypatch.chdir(tmp_path)

    with pytest.raises(AgentConfigurationError):
        PilotConfig.from_env()

def test_config_is_immutable():
    config = PilotConfig()
    with pytest.raises(ValidationError):
        config.max_iterations = 3

def test_empty_task_is_rejected():
    with pytest.raises(ValidationError):
        AgentSettings(task="   ", llm=ScriptedLLM())

@pytest.mark.parametrize("url", ["ftp://example.com", "example.com", "javascript:alert(1)"])
def test_starting_url_must_be_http_or_about(url):
    with pytest.raises(ValidationError):
        AgentSettings(task="t", llm=ScriptedLLM(), starting_url=url)

def test_settings_accept_valid_starting_url():
    settings = AgentSettings(task=" Find it ", llm=ScriptedLLM(), starting_url="https://example.com")
    assert settings.task == "Find it"
    assert settings.starting_url == "https://example.com"

def test_llm_must_be_invocable():
    with pytest.raises(ValidationError):
        AgentSettings(task="t", llm=object())
