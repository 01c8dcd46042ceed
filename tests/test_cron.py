import logging
import subprocess

from adapters.acme_sh import AcmeSh
from adapters.cron import RenewalScheduler
from models import RenewalJobDescriptor


def _cron_line(home):
    return f'12 0 * * * "{home}"/acme.sh --cron --home "{home}" > /dev/null\n'


def test_descriptor_matches_acme_cron_line(acme_home):
    job = RenewalJobDescriptor.for_home(str(acme_home))
    assert job.matches("MAILTO=root\n" + _cron_line(acme_home))
    assert not job.matches("# " + _cron_line(acme_home))
    assert not job.matches(_cron_line("/other/home"))
    assert not job.matches(_cron_line(f"{acme_home}2"))
    assert not job.matches("")


def test_existing_job_is_only_checked(installed_acme, fake_run):
    fake_run.on("crontab -l", stdout=_cron_line(installed_acme))
    assert RenewalScheduler(AcmeSh(installed_acme)).ensure() is True
    assert fake_run.commands("--install-cronjob") == []


def test_missing_job_is_installed(installed_acme, fake_run):
    fake_run.on("crontab -l", returncode=1, stderr="no crontab for root")
    assert RenewalScheduler(AcmeSh(installed_acme)).ensure() is True
    assert fake_run.commands("--install-cronjob") == [
        [str(installed_acme / "acme.sh"), "--home", str(installed_acme), "--install-cronjob"]]


def test_second_run_never_installs_twice(installed_acme, monkeypatch):
    crontab = {"text": ""}
    calls = []

    def fake(argv, **kwargs):
        calls.append(argv)
        if argv[:2] == ["crontab", "-l"]:
            return subprocess.CompletedProcess(argv, 0, crontab["text"], "")
        if "--install-cronjob" in argv:
            crontab["text"] = _cron_line(installed_acme)
        return subprocess.CompletedProcess(argv, 0, "", "")

    monkeypatch.setattr(subprocess, "run", fake)
    scheduler = RenewalScheduler(AcmeSh(installed_acme))
    scheduler.ensure()
    scheduler.ensure()

    assert sum("--install-cronjob" in argv for argv in calls) == 1
    assert sum(argv[:2] == ["crontab", "-l"] for argv in calls) == 2


def test_install_failure_is_a_warning(installed_acme, fake_run, caplog):
    fake_run.on("crontab -l", returncode=1)
    fake_run.on("--install-cronjob", returncode=1, stderr="crontab: command not found")
    with caplog.at_level(logging.WARNING):
        assert RenewalScheduler(AcmeSh(installed_acme)).ensure() is False
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_missing_crontab_binary_counts_as_absent(installed_acme, monkeypatch):
    def fake(argv, **kwargs):
        if argv[0] == "crontab":
            raise FileNotFoundError("crontab")
        return subprocess.CompletedProcess(argv, 0, "", "")

    monkeypatch.setattr(subprocess, "run", fake)
    assert RenewalScheduler(AcmeSh(installed_acme)).is_installed() is False
