import pytest

from app.config import Settings


def test_defaults_from_empty_environment(monkeypatch):
    for name in ["APP_NAME", "PORT", "LOG_LEVEL", "CORS_ORIGINS", "OPENAI_MODEL",
                 "AGENT_MAX_ITERATIONS", "EXPENSE_AUTO_APPROVAL_THRESHOLD",
                 "EXPENSE_MAX_MANAGER_APPROVAL"]:
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.port == 4002
    assert settings.app_name == "Expense Approvals Workflow Agent"
    assert settings.cors_origins == ["http://localhost:4200"]
    assert settings.approval_rules.auto_approval_threshold == 50
    assert settings.approval_rules.max_manager_approval == 1000


def test_thresholds_read_from_environment(monkeypatch):
    monkeypatch.setenv("EXPENSE_AUTO_APPROVAL_THRESHOLD", "75")
    monkeypatch.setenv("EXPENSE_MAX_MANAGER_APPROVAL", "2500")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.approval_rules.auto_approval_threshold == 75
    assert settings.approval_rules.max_manager_approval == 2500
    assert settings.cors_origins == ["http://a.test", "http://b.test"]
    assert settings.log_level == "DEBUG"


def test_non_numeric_threshold_is_rejected(monkeypatch):
    monkeypatch.setenv("EXPENSE_SINGLE_ITEM_LIMIT", "lots")

    with pytest.raises(ValueError, match="EXPENSE_SINGLE_ITEM_LIMIT"):
        Settings.from_env()


def test_app_hands_configured_api_key_to_agent(service):
    from app.main import create_app

    app = create_app(settings=Settings(openai_api_key="sk-from-settings"), service=service)

    agent = app.state.agent_registry.get("expense_workflow_agent")
    assert agent.api_key == "sk-from-settings"
