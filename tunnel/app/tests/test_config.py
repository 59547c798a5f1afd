"""
Configuration Tests

Tests settings sources, validation and config template creation.
"""

import json
import os
import uuid

import pytest
from pydantic import ValidationError

from tunnel.app.config import (
    CONFIG_FILE_ENV,
    TEMPLATE_FILE_NAME,
    Settings,
    load_or_create,
    settings_from_file,
    validate_configuration,
    write_config_template,
)
from tunnel.app.proxy.client import build_outbound_proxy, create_upstream_client


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep host environment and working-directory files out of Settings"""
    for name in ("TOKEN", "LISTENING", "TLS", "TLS_CERT", "TLS_KEY", "HTTP_PROXY",
                 "INSECURE_SKIP_VERIFY", "UPSTREAM_TIMEOUT_SECONDS", "LOG_LEVEL"):
        monkeypatch.delenv(f"TUN_{name}", raising=False)
    monkeypatch.setenv(CONFIG_FILE_ENV, str(tmp_path / "absent.json"))
    monkeypatch.chdir(tmp_path)


# ============================================================================
# Defaults / Sources
# ============================================================================

def test_defaults():
    settings = Settings()

    uuid.UUID(settings.token)
    assert settings.listening == "0.0.0.0:10010"
    assert settings.listen_host == "0.0.0.0"
    assert settings.listen_port == 10010
    assert settings.tls is False
    assert settings.insecure_skip_verify is False
    assert settings.upstream_timeout_seconds == 300.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TUN_TOKEN", "from-env")
    monkeypatch.setenv("TUN_LISTENING", "127.0.0.1:9000")

    settings = Settings()

    assert settings.token == "from-env"
    assert settings.listen_host == "127.0.0.1"
    assert settings.listen_port == 9000


def test_json_config_file(monkeypatch, tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({
        "token": "from-file",
        "http_proxy": "http://127.0.0.1:7890",
        "insecure_skip_verify": True,
    }))
    monkeypatch.setenv(CONFIG_FILE_ENV, str(config_file))

    settings = Settings()

    assert settings.token == "from-file"
    assert settings.http_proxy == "http://127.0.0.1:7890"
    assert settings.insecure_skip_verify is True


def test_ipv6_listen_address():
    settings = Settings(listening="[::1]:8443")

    assert settings.listen_host == "::1"
    assert settings.listen_port == 8443


# ============================================================================
# Validation
# ============================================================================

@pytest.mark.parametrize("token", ["", "   "])
def test_empty_token_is_rejected(token):
    with pytest.raises(ValidationError):
        Settings(token=token)


@pytest.mark.parametrize("listening", ["0.0.0.0", "host:port", "0.0.0.0:0", "0.0.0.0:70000"])
def test_invalid_listen_address_is_rejected(listening):
    with pytest.raises(ValidationError):
        Settings(listening=listening)


def test_tls_requires_cert_and_key():
    with pytest.raises(ValidationError):
        Settings(tls=True, tls_cert="cert.pem")


def test_validate_configuration_reports_missing_tls_files(tmp_path):
    settings = Settings(tls=True, tls_cert=str(tmp_path / "cert.pem"), tls_key=str(tmp_path / "key.pem"))

    report = validate_configuration(settings)

    assert report["valid"] is False
    assert len(report["errors"]) == 2


def test_validate_configuration_warns_on_skip_verify():
    report = validate_configuration(Settings(insecure_skip_verify=True, listening="127.0.0.1:10010"))

    assert report["valid"] is True
    assert any("insecure_skip_verify" in w for w in report["warnings"])


# ============================================================================
# Template Creation
# ============================================================================

def test_write_config_template(tmp_path):
    path = write_config_template(tmp_path / "template.json")

    data = json.loads(path.read_text())
    assert data["listening"] == "0.0.0.0:10010"
    assert data["tls"] is False
    assert data["insecure_skip_verify"] is False
    uuid.UUID(data["token"])


def test_load_or_create_writes_template_when_missing(tmp_path):
    result = load_or_create(tmp_path / "config.json")

    assert result is None
    assert (tmp_path / TEMPLATE_FILE_NAME).exists()
    assert not (tmp_path / "config.json").exists()


def test_load_or_create_reads_existing_file(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"token": "configured", "listening": "127.0.0.1:10443"}))

    settings = load_or_create(config_file)

    assert settings.token == "configured"
    assert settings.listen_port == 10443


def test_load_or_create_leaves_environment_untouched(tmp_path):
    """The config path is not leaked into TUN_CONFIG_FILE for later Settings() calls"""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"token": "configured"}))

    load_or_create(config_file)

    assert os.environ[CONFIG_FILE_ENV] == str(tmp_path / "absent.json")
    assert Settings().token != "configured"


def test_settings_from_file_keeps_environment_priority(monkeypatch, tmp_path):
    config_file = tmp_path / "other.json"
    config_file.write_text(json.dumps({"token": "from-file", "listening": "127.0.0.1:9443"}))
    monkeypatch.setenv("TUN_TOKEN", "from-env")

    settings = settings_from_file(config_file)

    assert isinstance(settings, Settings)
    assert settings.token == "from-env"
    assert settings.listen_port == 9443


# ============================================================================
# Upstream Client
# ============================================================================

def test_outbound_proxy_parsing():
    assert build_outbound_proxy("") is None
    assert build_outbound_proxy("   ") is None
    assert build_outbound_proxy("ftp://nope") is None
    assert str(build_outbound_proxy("http://127.0.0.1:7890").url) == "http://127.0.0.1:7890"


def test_upstream_client_does_not_follow_redirects():
    client = create_upstream_client(Settings(upstream_timeout_seconds=12))

    assert client.follow_redirects is False
    assert client.timeout.read == 12
