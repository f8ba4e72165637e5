import pytest
import sse_starlette.sse as sse
from fastapi.testclient import TestClient

from fakes import FakeCompletions, FakeGroqFactory
from main import create_app
from services.config_manager import ConfigManager


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    # sse-starlette keeps a process-wide exit event bound to the first loop
    app_status = getattr(sse, "AppStatus", None)
    if app_status is not None:
        app_status.should_exit_event = None
    yield
    if app_status is not None:
        app_status.should_exit_event = None


@pytest.fixture
def environ():
    return {"GROQ_API_KEY": "gsk-test-key"}


@pytest.fixture
def completions():
    return FakeCompletions(
        deltas=["<!DOCTYPE html>\n<html>", "<body>hi</body>", "", "\n</html>"],
    )


@pytest.fixture
def groq_factory(completions):
    return FakeGroqFactory(completions)


@pytest.fixture
def config_manager(tmp_path, environ):
    return ConfigManager(config_file=tmp_path / "config.json", environ=environ)


@pytest.fixture
def app(config_manager, environ, groq_factory):
    return create_app(config_manager=config_manager, environ=environ, groq_factory=groq_factory)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
