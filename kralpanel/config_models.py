# kralpanel/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the provisioner configuration.

This module defines the structured settings for the installer, including
defaults, type annotations, and descriptions. Values are resolved from model
defaults, a YAML file, environment variables (``KRALPANEL_`` prefix, ``__``
as nested delimiter) and command-line overrides, see ``config_loader``.
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
KRALPANEL_VERSION: str = "1.0.0"
INSTALL_DIR_DEFAULT: str = "/opt/kralpanel"
LOG_PREFIX_DEFAULT: str = "[KRALPANEL]"
LOCK_FILE_DEFAULT: str = "/run/kralpanel-install.lock"
OS_RELEASE_PATH_DEFAULT: str = "/etc/os-release"

REPO_URL_DEFAULT: str = "github.com/kubilayyil/mimipanel.git"
PREBUILT_ARCHIVE_URL_DEFAULT: str = (
    "https://github.com/kubilayyil/mimipanel/releases/latest/download/"
    "kralpanel-linux-amd64.tar.gz"
)
GIT_TOKEN_ENV_DEFAULT: str = "KRALPANEL_GIT_TOKEN"

GO_VERSION_DEFAULT: str = "1.22.0"
GO_DOWNLOAD_URL_TEMPLATE_DEFAULT: str = (
    "https://go.dev/dl/go{version}.linux-amd64.tar.gz"
)
GO_INSTALL_ROOT_DEFAULT: str = "/usr/local"
NODESOURCE_SETUP_URL_DEFAULT: str = "https://deb.nodesource.com/setup_20.x"

PUBLIC_IP_LOOKUP_URL_DEFAULT: str = "https://ifconfig.me/ip"

BACKEND_PORT_DEFAULT: int = 8080
FRONTEND_PORT_DEFAULT: int = 3000

SYSTEMD_UNIT_DIR_DEFAULT: str = "/etc/systemd/system"
NGINX_SITES_AVAILABLE_DIR_DEFAULT: str = "/etc/nginx/sites-available"
NGINX_SITES_ENABLED_DIR_DEFAULT: str = "/etc/nginx/sites-enabled"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}

SYSTEMD_UNIT_TEMPLATE_DEFAULT: str = """\
# {service_name}.service generated by KralPanel installer v{version}
[Unit]
Description={description}
After=network.target

[Service]
ExecStart={exec_start}
WorkingDirectory={working_directory}
Restart={restart_policy}
User={user}
{environment_lines}
[Install]
WantedBy=multi-user.target
"""

NGINX_SITE_TEMPLATE_DEFAULT: str = """\
# {site_name} generated by KralPanel installer v{version}
server {{
    listen {listen_port};
    server_name {server_name};
{locations}}}
"""

NGINX_LOCATION_TEMPLATE_DEFAULT: str = """\
    location {path} {{
        proxy_pass {upstream};
        proxy_http_version 1.1;
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";
    }}
"""

FRONTEND_ENV_TEMPLATE_DEFAULT: str = """\
# Generated by KralPanel installer v{version}
NEXT_PUBLIC_API_URL=http://{public_ip}/api
NEXT_PUBLIC_SERVER_IP={public_ip}
PORT={frontend_port}
"""


class PackageSet(BaseModel):
    """One entry of the install manifest: a named group of apt packages."""

    name: str = Field(description="Human-readable name of the package set.")
    packages: List[str] = Field(description="Apt package names to install.")


def _default_manifest() -> List[PackageSet]:
    return [
        PackageSet(
            name="base",
            packages=[
                "curl",
                "wget",
                "git",
                "build-essential",
                "software-properties-common",
                "unzip",
            ],
        ),
        PackageSet(name="security", packages=["ufw", "fail2ban"]),
        PackageSet(name="web-server", packages=["nginx"]),
        PackageSet(
            name="php",
            packages=[
                "php-fpm",
                "php-cli",
                "php-mysql",
                "php-curl",
                "php-mbstring",
                "php-xml",
                "php-zip",
            ],
        ),
        PackageSet(name="database", packages=["mariadb-server"]),
        PackageSet(
            name="mail",
            packages=["postfix", "dovecot-imapd", "dovecot-pop3d"],
        ),
        PackageSet(
            name="tls", packages=["certbot", "python3-certbot-nginx"]
        ),
        PackageSet(name="cache", packages=["redis-server", "memcached"]),
        PackageSet(name="ftp", packages=["vsftpd"]),
    ]


class OsSettings(BaseModel):
    """Platform detection policy."""

    os_release_path: Path = Field(
        default=Path(OS_RELEASE_PATH_DEFAULT),
        description="Platform identification file to parse.",
    )
    supported_ids: List[str] = Field(
        default_factory=lambda: ["ubuntu"],
        description="Allow-list of os-release ID values.",
    )


class RuntimeSettings(BaseModel):
    """Go and Node.js runtime installation settings."""

    go_version: str = Field(default=GO_VERSION_DEFAULT)
    go_download_url_template: str = Field(
        default=GO_DOWNLOAD_URL_TEMPLATE_DEFAULT,
        description="Go tarball URL. Supports placeholder {version}.",
    )
    go_install_root: Path = Field(
        default=Path(GO_INSTALL_ROOT_DEFAULT),
        description="Directory the Go tarball is extracted into.",
    )
    nodesource_setup_url: str = Field(default=NODESOURCE_SETUP_URL_DEFAULT)
    npm_global_packages: List[str] = Field(
        default_factory=lambda: ["pm2"],
        description="Tools installed with 'npm install -g' after Node.js.",
    )

    @property
    def go_bin_dir(self) -> Path:
        return self.go_install_root / "go" / "bin"

    @property
    def go_download_url(self) -> str:
        return self.go_download_url_template.format(version=self.go_version)


class CredentialSettings(BaseModel):
    """Where the source-control access credential comes from."""

    source: Literal["env", "file", "prompt", "auto"] = Field(
        default="auto",
        description="'auto' tries env, then file, then an interactive prompt.",
    )
    env_var: str = Field(default=GIT_TOKEN_ENV_DEFAULT)
    file_path: Optional[Path] = Field(
        default=None, description="Secret file holding the token."
    )
    prompt_text: str = Field(default="GitHub Token (ghp_xxx)")


class ArtifactSettings(BaseModel):
    """Application payload acquisition settings."""

    strategy: Literal["prebuilt", "source"] = Field(
        default="source",
        description="'prebuilt' downloads an archive, 'source' clones and builds.",
    )
    install_dir: Path = Field(default=Path(INSTALL_DIR_DEFAULT))
    backend_subdir: str = Field(default="backend")
    frontend_subdir: str = Field(default="frontend")
    backend_executable_name: str = Field(default="kralpanel-api")

    archive_url: Union[HttpUrl, str] = Field(
        default=PREBUILT_ARCHIVE_URL_DEFAULT
    )
    archive_sha256: Optional[str] = Field(
        default=None, description="Expected SHA-256 of the archive, if known."
    )
    archive_strip_components: int = Field(
        default=0,
        ge=0,
        description="Leading path components removed from archive members.",
    )
    download_timeout: int = Field(default=300, gt=0)

    repo_url: str = Field(
        default=REPO_URL_DEFAULT,
        description="Repository host/path without scheme, e.g. github.com/org/repo.git.",
    )
    repo_branch: Optional[str] = Field(default=None)
    build_target: str = Field(default="./cmd/api")
    credential: CredentialSettings = Field(default_factory=CredentialSettings)


class ServiceSettings(BaseModel):
    """systemd service descriptor settings for the backend."""

    name: str = Field(default="kralpanel-api")
    description: str = Field(default="KralPanel API")
    user: str = Field(
        default="root",
        description="Account the backend runs as. 'root' is logged as a warning.",
    )
    environment: Dict[str, str] = Field(default_factory=dict)
    unit_dir: Path = Field(default=Path(SYSTEMD_UNIT_DIR_DEFAULT))
    unit_template: str = Field(
        default=SYSTEMD_UNIT_TEMPLATE_DEFAULT,
        description="Supports {service_name}, {description}, {exec_start}, "
        "{working_directory}, {restart_policy}, {user}, {environment_lines}, {version}.",
    )


class FrontendSettings(BaseModel):
    """Frontend (pm2-supervised) settings."""

    process_name: str = Field(default="kralpanel-ui")
    port: int = Field(default=FRONTEND_PORT_DEFAULT)
    env_file_name: str = Field(default=".env.local")
    env_template: str = Field(
        default=FRONTEND_ENV_TEMPLATE_DEFAULT,
        description="Supports {public_ip}, {frontend_port}, {backend_port}, {version}.",
    )
    build: bool = Field(
        default=False,
        description="Force 'npm run build' even for prebuilt artifacts.",
    )
    public_ip_lookup_url: str = Field(default=PUBLIC_IP_LOOKUP_URL_DEFAULT)
    public_ip_timeout: int = Field(default=10, gt=0)
    public_ip_override: Optional[str] = Field(
        default=None, description="Skip detection and use this address."
    )


class ProxySettings(BaseModel):
    """nginx reverse-proxy settings."""

    site_name: str = Field(default="kralpanel")
    listen_port: int = Field(default=80)
    backend_port: int = Field(default=BACKEND_PORT_DEFAULT)
    upstream_host: str = Field(default="127.0.0.1")
    api_prefix: str = Field(default="/api")
    sites_available_dir: Path = Field(
        default=Path(NGINX_SITES_AVAILABLE_DIR_DEFAULT)
    )
    sites_enabled_dir: Path = Field(
        default=Path(NGINX_SITES_ENABLED_DIR_DEFAULT)
    )
    disable_default_site: bool = Field(default=True)
    site_template: str = Field(default=NGINX_SITE_TEMPLATE_DEFAULT)
    location_template: str = Field(default=NGINX_LOCATION_TEMPLATE_DEFAULT)


class AppSettings(BaseSettings):
    """Main installer settings."""

    model_config = SettingsConfigDict(
        env_prefix="KRALPANEL_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_prefix: str = Field(
        default=LOG_PREFIX_DEFAULT,
        description="Prefix for log messages from the installer.",
    )
    lock_file: Path = Field(
        default=Path(LOCK_FILE_DEFAULT),
        description="Lock held for the duration of a run.",
    )
    manifest: List[PackageSet] = Field(default_factory=_default_manifest)

    os: OsSettings = Field(default_factory=OsSettings)
    runtimes: RuntimeSettings = Field(default_factory=RuntimeSettings)
    artifact: ArtifactSettings = Field(default_factory=ArtifactSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    frontend: FrontendSettings = Field(default_factory=FrontendSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )
