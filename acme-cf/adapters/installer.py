# adapters/installer.py
import logging
import os
import subprocess
import tempfile

import requests

from adapters.acme_sh import AcmeSh
from errors import FetchFailed, InstallerFailed, PostInstallVerificationFailed

logger = logging.getLogger(__name__)

INSTALLER_URL = "https://get.acme.sh"


class AcmeInstaller:
    """
    Makes sure acme.sh exists under its home directory.

    Honors:
      - an existing <home>/acme.sh  -> returned as-is, no network access
      - contact email              -> passed to the installer as email=<addr>
    The installer runs with LE_WORKING_DIR=<home> inside a private temp dir
    that is removed whatever the outcome.
    """
    def __init__(self, acme: AcmeSh, url: str = INSTALLER_URL,
                 session: requests.Session | None = None, timeout: int = 60):
        self.acme = acme
        self.url = url
        self.sess = session or requests.Session()
        self.timeout = timeout

    def ensure(self, contact_email: str | None = None) -> str:
        if self.acme.exists():
            logger.info("acme.sh already installed at %s.", self.acme.path)
            return self.acme.path

        logger.info("acme.sh not found in %s. Installing...", self.acme.home)
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.acme.home)), exist_ok=True)
        except OSError as e:
            raise InstallerFailed(f"Cannot create the parent of {self.acme.home}: {e}", -1) from e
        with tempfile.TemporaryDirectory(prefix="acme-install-") as workdir:
            script = os.path.join(workdir, "get-acme.sh")
            self._fetch(script)
            self._run_installer(script, workdir, contact_email)

        if not self.acme.exists():
            raise PostInstallVerificationFailed(
                f"Installer finished but {self.acme.path} does not exist. "
                f"Check the contents and permissions of {self.acme.home}."
            )
        logger.info("acme.sh installed to %s.", self.acme.home)
        return self.acme.path

    def _fetch(self, dest: str) -> None:
        try:
            r = self.sess.get(self.url, timeout=self.timeout)
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FetchFailed(f"Downloading the acme.sh installer from {self.url} failed: {e}") from e
        fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(r.content)
        logger.info("Downloaded acme.sh installer.")

    def _run_installer(self, script: str, workdir: str, contact_email: str | None) -> None:
        argv = ["sh", script]
        if contact_email:
            argv.append(f"email={contact_email}")
        env = {**os.environ, "LE_WORKING_DIR": self.acme.home}
        logger.info("Running installer: %s", " ".join(argv))
        try:
            p = subprocess.run(argv, capture_output=True, text=True, cwd=workdir, env=env)
        except OSError as e:
            raise InstallerFailed(f"Could not execute the acme.sh installer: {e}", -1) from e
        output = (p.stdout or "") + (p.stderr or "")
        for line in output.splitlines():
            logger.debug("installer: %s", line)
        if p.returncode != 0:
            raise InstallerFailed(
                f"acme.sh installer exited with {p.returncode}.\n{output}".rstrip(),
                p.returncode, output,
            )
