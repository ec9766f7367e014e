import pytest

from kralpanel.config_models import PackageSet
from kralpanel.context import ProvisionContext
from kralpanel.errors import PackageInstallationError
from kralpanel.steps.dependencies import DependencyInstallStep


@pytest.fixture
def mock_apt(mocker):
    mock_class = mocker.patch("kralpanel.steps.dependencies.AptManager")
    manager = mock_class.return_value
    manager.update.return_value = True
    manager.install.return_value = True
    return mock_class


def test_installs_every_set_in_manifest_order(app_settings, mock_logger, mock_apt):
    DependencyInstallStep(app_settings, mock_logger).run(ProvisionContext())

    manager = mock_apt.return_value
    manager.update.assert_called_once_with(app_settings)
    installed = [c.args[0] for c in manager.install.call_args_list]
    assert installed == [s.packages for s in app_settings.manifest]
    for call in manager.install.call_args_list:
        assert call.kwargs == {"update_first": False}


def test_default_manifest_covers_panel_services(app_settings):
    packages = {p for s in app_settings.manifest for p in s.packages}
    assert {"nginx", "mariadb-server", "ufw", "fail2ban", "certbot", "vsftpd"} <= packages


def test_stops_at_first_failing_set(app_settings, mock_logger, mock_apt):
    app_settings.manifest = [
        PackageSet(name="base", packages=["curl"]),
        PackageSet(name="database", packages=["mariadb-server"]),
        PackageSet(name="mail", packages=["postfix"]),
    ]
    mock_apt.return_value.install.side_effect = [True, False, True]

    with pytest.raises(PackageInstallationError) as excinfo:
        DependencyInstallStep(app_settings, mock_logger).run(ProvisionContext())

    assert "database" in excinfo.value.message
    assert excinfo.value.step == "dependencies"
    assert mock_apt.return_value.install.call_count == 2


def test_empty_sets_are_skipped(app_settings, mock_logger, mock_apt):
    app_settings.manifest = [
        PackageSet(name="empty", packages=[]),
        PackageSet(name="web-server", packages=["nginx"]),
    ]

    DependencyInstallStep(app_settings, mock_logger).run(ProvisionContext())

    mock_apt.return_value.install.assert_called_once_with(
        ["nginx"], app_settings, update_first=False
    )


def test_update_failure(app_settings, mock_logger, mock_apt):
    mock_apt.return_value.update.return_value = False

    with pytest.raises(PackageInstallationError, match="update apt"):
        DependencyInstallStep(app_settings, mock_logger).run(ProvisionContext())
    mock_apt.return_value.install.assert_not_called()


def test_apt_missing(app_settings, mock_logger, mock_apt):
    mock_apt.side_effect = FileNotFoundError("'apt-get' not found.")

    with pytest.raises(PackageInstallationError, match="apt-get"):
        DependencyInstallStep(app_settings, mock_logger).run(ProvisionContext())
