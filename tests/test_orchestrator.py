import logging
import os

import pytest
from pydantic import SecretStr

from adapters.acme_sh import AcmeSh
from errors import InstallFailed, IssuanceFailed
from models import OrchestratorConfig, ResolvedCredentials
from orchestrator import CertificateOrchestrator, Stage

SECRET = "cf-global-key-0123456789"


@pytest.fixture
def creds():
    return ResolvedCredentials(api_key=SecretStr(SECRET), account_email="dns@example.com",
                               target_domain="example.com")


@pytest.fixture
def config(tmp_path, installed_acme):
    return OrchestratorConfig(cert_dir=tmp_path / "ssl", acme_home=installed_acme,
                              account_email="le@example.com")


def _orc(config):
    return CertificateOrchestrator(AcmeSh(config.acme_home, debug=config.debug), config)


def test_happy_path_runs_each_stage_once(config, creds, fake_run, tmp_path):
    orc = _orc(config)
    installed = orc.run(creds)

    ops = [c["argv"][3] for c in fake_run.calls]
    assert ops == ["--upgrade", "--register-account", "--issue", "--install-cert"]
    assert orc.stage is Stage.DONE
    assert installed.issued is True
    assert installed.key_file == tmp_path / "ssl" / "example.com.key"
    assert installed.fullchain_file == tmp_path / "ssl" / "example.com.crt"
    assert (tmp_path / "ssl").is_dir()


def test_issue_command_and_credentials_in_child_env_only(config, creds, fake_run):
    _orc(config).run(creds)

    issue = fake_run.calls[2]
    assert issue["argv"][3:] == ["--issue", "--dns", "dns_cf", "-d", "example.com",
                                 "--server", "letsencrypt"]
    assert all(SECRET not in a for c in fake_run.calls for a in c["argv"])
    assert issue["env"]["CF_Key"] == SECRET
    assert issue["env"]["CF_Email"] == "dns@example.com"
    assert os.environ.get("CF_Key") != SECRET
    assert fake_run.calls[3]["env"] is None


def test_install_cert_arguments(config, creds, fake_run, tmp_path):
    config = config.model_copy(update={"reload_cmd": "systemctl reload nginx", "cert_suffix": ".cer"})
    _orc(config).run(creds)

    install = fake_run.calls[-1]["argv"]
    ssl = str(tmp_path / "ssl")
    assert install[3:] == ["--install-cert", "-d", "example.com",
                           "--key-file", os.path.join(ssl, "example.com.key"),
                           "--fullchain-file", os.path.join(ssl, "example.com.cer"),
                           "--reloadcmd", "systemctl reload nginx"]


def test_registration_failure_is_soft(config, creds, fake_run, caplog):
    fake_run.on("--register-account", returncode=1, stderr="Account already exists")
    with caplog.at_level(logging.WARNING):
        _orc(config).run(creds)
    assert fake_run.commands("--install-cert")
    assert any("registration failed" in r.getMessage() for r in caplog.records)


def test_no_contact_email_skips_registration(config, creds, fake_run):
    config = config.model_copy(update={"account_email": None, "upgrade": False})
    _orc(config).run(creds)
    assert fake_run.commands("--register-account") == []
    assert fake_run.commands("--upgrade") == []


def test_issuance_failure_stops_before_install(config, creds, fake_run):
    fake_run.on("--issue", returncode=1, stderr="Error add txt for domain:_acme-challenge.example.com")
    orc = _orc(config)

    with pytest.raises(IssuanceFailed) as excinfo:
        orc.run(creds)

    err = excinfo.value
    assert err.domain == "example.com"
    assert err.account_email == "dns@example.com"
    assert err.log_file.endswith("acme.sh.log")
    assert "_acme-challenge" in str(err)
    assert fake_run.commands("--install-cert") == []
    assert orc.stage is Stage.FAILED


def test_not_due_for_renewal_still_installs(config, creds, fake_run):
    fake_run.on("--issue", returncode=2, stdout="Skipping. Next renewal time is: 2026-12-01")
    installed = _orc(config).run(creds)
    assert installed.issued is False
    assert fake_run.commands("--install-cert")


def test_install_failure(config, creds, fake_run):
    fake_run.on("--install-cert", returncode=1, stderr="Permission denied")
    orc = _orc(config)
    with pytest.raises(InstallFailed, match="Permission denied"):
        orc.run(creds)
    assert orc.stage is Stage.FAILED


def test_upgrade_failure_is_soft(config, creds, fake_run):
    fake_run.on("--upgrade", returncode=1)
    assert _orc(config).run(creds).issued is True


def test_debug_flag_reaches_client(config, creds, fake_run):
    config = config.model_copy(update={"debug": True})
    _orc(config).run(creds)
    assert all(c["argv"][-2:] == ["--debug", "2"] for c in fake_run.calls)
