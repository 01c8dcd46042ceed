# acme-cf/orchestrator.py
import logging
import os
from enum import Enum

from adapters.acme_sh import AcmeSh, RENEW_SKIP
from errors import AcmeCommandError, IssuanceFailed, InstallFailed
from models import InstalledCertificate, OrchestratorConfig, ResolvedCredentials

logger = logging.getLogger(__name__)

DNS_API = "dns_cf"


class Stage(str, Enum):
    REGISTERING = "registering"
    ISSUING = "issuing"
    INSTALLING = "installing"
    DONE = "done"
    FAILED = "failed"


def _tail(text: str, lines: int = 20) -> str:
    return "\n".join((text or "").strip().splitlines()[-lines:])


class CertificateOrchestrator:
    """
    Drives acme.sh through one run: register -> issue (DNS-01) -> install-cert.

    Registration and upgrade failures only warn; issuance and installation
    failures are fatal and stop the run where they happen.
    """
    def __init__(self, acme: AcmeSh, config: OrchestratorConfig):
        self.acme = acme
        self.config = config
        self.stage = Stage.REGISTERING
        self.failure: str | None = None

    def run(self, creds: ResolvedCredentials) -> InstalledCertificate:
        try:
            self.stage = Stage.REGISTERING
            self._upgrade()
            self._register()
            self.stage = Stage.ISSUING
            issued = self._issue(creds)
            self.stage = Stage.INSTALLING
            installed = self._install(creds.target_domain)
        except Exception as e:
            self.failure = str(e)
            self.stage = Stage.FAILED
            raise
        self.stage = Stage.DONE
        return installed.model_copy(update={"issued": issued})

    # ------------------ REGISTERING ------------------
    def _upgrade(self) -> None:
        if not self.config.upgrade:
            return
        logger.info("Upgrading acme.sh...")
        try:
            self.acme.run("--upgrade")
        except (AcmeCommandError, OSError) as e:
            logger.warning("acme.sh upgrade failed, continuing with the installed version. %s", e)

    def _register(self) -> None:
        email = self.config.account_email
        if not email:
            logger.info("No ACME account email given (-m); skipping account registration.")
            return
        logger.info("Registering/updating ACME account for %s", email)
        try:
            self.acme.run("--register-account", "-m", email, "--server", self.config.server)
        except (AcmeCommandError, OSError) as e:
            # an already-registered account fails here with some acme.sh versions
            logger.warning("ACME account registration failed (email: %s); check %s. %s",
                           email, self.acme.log_file, e)

    # ------------------ ISSUING ------------------
    def _issue(self, creds: ResolvedCredentials) -> bool:
        domain = creds.target_domain
        logger.info("Issuing certificate for %s via %s (this may take a few minutes)...", domain, DNS_API)
        try:
            r = self.acme.run("--issue", "--dns", DNS_API, "-d", domain, "--server", self.config.server,
                              env=creds.client_env(), ok_codes=(0, RENEW_SKIP))
        except AcmeCommandError as e:
            raise IssuanceFailed(domain, creds.account_email, self.acme.log_file,
                                 _tail(e.stderr or e.stdout)) from e
        except OSError as e:
            raise IssuanceFailed(domain, creds.account_email, self.acme.log_file, str(e)) from e
        if r.returncode == RENEW_SKIP:
            logger.info("Certificate for %s exists and is not due for renewal; skipping issuance.", domain)
            return False
        logger.info("Certificate issued for %s.", domain)
        return True

    # ------------------ INSTALLING ------------------
    def cert_paths(self, domain: str) -> tuple[str, str]:
        cert_dir = os.fspath(self.config.cert_dir)
        return (os.path.join(cert_dir, f"{domain}.key"),
                os.path.join(cert_dir, f"{domain}{self.config.cert_suffix}"))

    def _install(self, domain: str) -> InstalledCertificate:
        cert_dir = os.fspath(self.config.cert_dir)
        logger.info("Installing certificate into %s...", cert_dir)
        try:
            os.makedirs(cert_dir, exist_ok=True)
        except OSError as e:
            raise InstallFailed(domain, cert_dir, self.acme.log_file, f"cannot create directory: {e}") from e

        key_file, fullchain_file = self.cert_paths(domain)
        args = ["--install-cert", "-d", domain,
                "--key-file", key_file,
                "--fullchain-file", fullchain_file]
        if self.config.reload_cmd:
            args += ["--reloadcmd", self.config.reload_cmd]
        try:
            self.acme.run(*args)
        except (AcmeCommandError, OSError) as e:
            detail = _tail(e.stderr or e.stdout) if isinstance(e, AcmeCommandError) else str(e)
            raise InstallFailed(domain, cert_dir, self.acme.log_file, detail) from e

        logger.info("Certificate for %s installed into %s.", domain, cert_dir)
        if self.config.reload_cmd:
            logger.info("Reload command run by acme.sh: %s", self.config.reload_cmd)
        return InstalledCertificate(domain=domain, key_file=key_file, fullchain_file=fullchain_file,
                                    reload_cmd=self.config.reload_cmd)
