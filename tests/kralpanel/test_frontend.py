import subprocess

import pytest

from kralpanel.acquisition import artifact_layout
from kralpanel.context import ProvisionContext
from kralpanel.errors import FrontendError
from kralpanel.steps.frontend import FrontendStep, resolve_public_ip

PUBLIC_IP = "203.0.113.7"


@pytest.fixture
def mock_run(mocker):
    return mocker.patch("kralpanel.steps.frontend.run_command")


@pytest.fixture
def frontend_dir(app_settings):
    path = artifact_layout(app_settings.artifact).frontend_dir
    path.mkdir(parents=True)
    return path


def test_resolve_public_ip_prefers_override(app_settings, mocker):
    mock_lookup = mocker.patch("kralpanel.steps.frontend.lookup_public_ip")
    app_settings.frontend.public_ip_override = "198.51.100.1"
    context = ProvisionContext()

    assert resolve_public_ip(app_settings, context) == "198.51.100.1"
    assert context.public_ip == "198.51.100.1"
    mock_lookup.assert_not_called()


def test_resolve_public_ip_falls_back_to_interface(app_settings, mocker):
    mocker.patch("kralpanel.steps.frontend.lookup_public_ip", return_value=None)
    mocker.patch(
        "kralpanel.steps.frontend.get_primary_ip_address", return_value="10.0.0.5"
    )

    assert resolve_public_ip(app_settings, ProvisionContext()) == "10.0.0.5"


def test_resolve_public_ip_is_cached(app_settings, mocker):
    mock_lookup = mocker.patch(
        "kralpanel.steps.frontend.lookup_public_ip", return_value=PUBLIC_IP
    )
    context = ProvisionContext()

    resolve_public_ip(app_settings, context)
    resolve_public_ip(app_settings, context)

    mock_lookup.assert_called_once()


def test_frontend_started_under_pm2(app_settings, mock_logger, mock_run, frontend_dir):
    context = ProvisionContext(public_ip=PUBLIC_IP)

    FrontendStep(app_settings, mock_logger).run(context)

    env_file = (frontend_dir / ".env.local").read_text()
    assert f"NEXT_PUBLIC_API_URL=http://{PUBLIC_IP}/api" in env_file
    commands = [c.args[0] for c in mock_run.call_args_list]
    assert commands == [
        ["npm", "install", "--quiet"],
        ["pm2", "delete", "kralpanel-ui"],
        ["pm2", "start", "npm", "--name", "kralpanel-ui", "--", "start"],
        ["pm2", "save", "--silent"],
    ]
    assert mock_run.call_args_list[1].kwargs["check"] is False
    start_call = mock_run.call_args_list[2]
    assert start_call.kwargs["cwd"] == str(frontend_dir)
    assert start_call.kwargs["env"]["PORT"] == "3000"


def test_source_checkout_is_built(app_settings, mock_logger, mock_run, frontend_dir):
    context = ProvisionContext(
        public_ip=PUBLIC_IP,
        artifact=artifact_layout(app_settings.artifact, built_from_source=True),
    )

    FrontendStep(app_settings, mock_logger).run(context)

    commands = [c.args[0] for c in mock_run.call_args_list]
    assert ["npm", "run", "build", "--quiet"] in commands
    assert commands.index(["npm", "run", "build", "--quiet"]) == 1


def test_missing_frontend_directory(app_settings, mock_logger, mock_run):
    with pytest.raises(FrontendError, match="does not exist"):
        FrontendStep(app_settings, mock_logger).run(
            ProvisionContext(public_ip=PUBLIC_IP)
        )
    mock_run.assert_not_called()


def test_no_address_available(app_settings, mock_logger, mock_run, frontend_dir, mocker):
    mocker.patch("kralpanel.steps.frontend.lookup_public_ip", return_value=None)
    mocker.patch(
        "kralpanel.steps.frontend.get_primary_ip_address", return_value=None
    )

    with pytest.raises(FrontendError, match="public IP"):
        FrontendStep(app_settings, mock_logger).run(ProvisionContext())
    mock_run.assert_not_called()


def test_pm2_start_failure(app_settings, mock_logger, mock_run, frontend_dir):
    def fake_run(command, *args, **kwargs):
        if command[:2] == ["pm2", "start"]:
            raise subprocess.CalledProcessError(1, command)

    mock_run.side_effect = fake_run

    with pytest.raises(FrontendError, match="kralpanel-ui") as excinfo:
        FrontendStep(app_settings, mock_logger).run(
            ProvisionContext(public_ip=PUBLIC_IP)
        )
    assert excinfo.value.step == "frontend"
