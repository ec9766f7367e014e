import subprocess

import pytest

from kralpanel.context import ProvisionContext
from kralpanel.errors import ServiceStartError
from kralpanel.steps.service import ServiceRegistrationStep


@pytest.fixture
def mocks(mocker):
    return {
        "systemd_reload": mocker.patch("kralpanel.steps.service.systemd_reload"),
        "run_elevated_command": mocker.patch(
            "kralpanel.steps.service.run_elevated_command"
        ),
        "is_service_active": mocker.patch(
            "kralpanel.steps.service.is_service_active", return_value=True
        ),
    }


def _unit_path(app_settings):
    return app_settings.service.unit_dir / "kralpanel-api.service"


def test_writes_unit_and_starts_service(app_settings, mock_logger, mocks):
    ServiceRegistrationStep(app_settings, mock_logger).run(ProvisionContext())

    unit = _unit_path(app_settings).read_text()
    assert (
        f"ExecStart={app_settings.artifact.install_dir}/backend/kralpanel-api"
        in unit
    )
    mocks["systemd_reload"].assert_called_once_with(app_settings, mock_logger)
    commands = [c.args[0] for c in mocks["run_elevated_command"].call_args_list]
    assert commands == [
        ["systemctl", "enable", "-q", "kralpanel-api.service"],
        ["systemctl", "restart", "kralpanel-api.service"],
    ]


def test_rerun_rewrites_identical_unit(app_settings, mock_logger, mocks):
    step = ServiceRegistrationStep(app_settings, mock_logger)
    step.run(ProvisionContext())
    first = _unit_path(app_settings).read_text()

    step.run(ProvisionContext())

    assert _unit_path(app_settings).read_text() == first
    assert sorted(p.name for p in app_settings.service.unit_dir.iterdir()) == [
        "kralpanel-api.service"
    ]


def test_root_service_user_is_warned_about(app_settings, mock_logger, mocks):
    ServiceRegistrationStep(app_settings, mock_logger).run(ProvisionContext())

    mock_logger.warning.assert_called_once()
    assert "will run as root" in mock_logger.warning.call_args.args[0]


def test_unprivileged_service_user(app_settings, mock_logger, mocks):
    app_settings.service.user = "kralpanel"

    ServiceRegistrationStep(app_settings, mock_logger).run(ProvisionContext())

    mock_logger.warning.assert_not_called()
    assert "User=kralpanel\n" in _unit_path(app_settings).read_text()


def test_restart_failure(app_settings, mock_logger, mocks):
    mocks["run_elevated_command"].side_effect = [
        None,
        subprocess.CalledProcessError(1, "systemctl"),
    ]

    with pytest.raises(ServiceStartError, match="Failed to start service"):
        ServiceRegistrationStep(app_settings, mock_logger).run(ProvisionContext())


def test_inactive_after_start(app_settings, mock_logger, mocks):
    mocks["is_service_active"].return_value = False

    with pytest.raises(ServiceStartError, match="not active") as excinfo:
        ServiceRegistrationStep(app_settings, mock_logger).run(ProvisionContext())
    assert excinfo.value.step == "service"
