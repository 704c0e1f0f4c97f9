import pytest
import structlog

from authsentry.core.initialization import initialize_application
from authsentry.core.logging import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_initialize_application_loads_env_then_configures_logging(mocker):
    manager = mocker.MagicMock()
    mocker.patch("authsentry.core.initialization.load_dotenv", manager.load_dotenv)
    mocker.patch("authsentry.core.initialization.configure_logging", manager.configure_logging)

    initialize_application()

    assert [call[0] for call in manager.mock_calls] == ["load_dotenv", "configure_logging"]
    manager.load_dotenv.assert_called_once_with(override=True)


def test_configure_logging_uses_json_renderer_in_production_mode():
    configure_logging(log_level="warning", json_logs=True)

    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.processors.JSONRenderer)


def test_configure_logging_uses_console_renderer_for_development():
    configure_logging(log_level="DEBUG", json_logs=False)

    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
