# adapters/cron.py
import logging
import subprocess

from adapters.acme_sh import AcmeSh
from errors import AcmeCommandError
from models import RenewalJobDescriptor

logger = logging.getLogger(__name__)


class RenewalScheduler:
    """Check-then-install of the renewal cron job acme.sh manages for itself."""

    def __init__(self, acme: AcmeSh):
        self.acme = acme
        self.job = RenewalJobDescriptor.for_home(acme.home)

    def is_installed(self) -> bool:
        try:
            p = subprocess.run(["crontab", "-l"], capture_output=True, text=True)
        except OSError as e:
            logger.debug("crontab not available: %s", e)
            return False
        # crontab -l exits 1 when the user has no crontab yet
        if p.returncode != 0:
            return False
        return self.job.matches(p.stdout or "")

    def ensure(self) -> bool:
        logger.info("Checking the acme.sh renewal cron job...")
        if self.is_installed():
            logger.info("acme.sh cron job is already installed.")
            return True

        logger.info("No cron job found. Installing the acme.sh cron job...")
        try:
            self.acme.run("--install-cronjob")
        except (AcmeCommandError, OSError) as e:
            logger.warning("Installing the acme.sh cron job failed; renewal may need to be set up manually. %s", e)
            return False
        logger.info("acme.sh cron job installed: %s", self.job.command)
        return True
