# adapters/acme_sh.py
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass

from errors import AcmeCommandError

logger = logging.getLogger(__name__)

# acme.sh exit code when the cert exists and is not due for renewal
RENEW_SKIP = 2


@dataclass
class AcmeResult:
    returncode: int
    stdout: str
    stderr: str
    cmd: str


class AcmeSh:
    """
    Thin runner around one acme.sh installation.
      - every call gets --home <home> so config/account/log stay together
      - ACME_DEBUG style flag appends --debug 2
      - extra env (credentials) is merged into the child only, never os.environ
    """
    def __init__(self, home: str | os.PathLike, debug: bool = False):
        self.home = os.fspath(home)
        self.debug = debug

    @property
    def path(self) -> str:
        return os.path.join(self.home, "acme.sh")

    @property
    def log_file(self) -> str:
        return os.path.join(self.home, "acme.sh.log")

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def argv(self, *args: str) -> list[str]:
        argv = [self.path, "--home", self.home, *args]
        if self.debug:
            argv += ["--debug", "2"]
        return argv

    def run(self, *args: str, env: dict[str, str] | None = None, check: bool = True,
            ok_codes: tuple[int, ...] = (0,)) -> AcmeResult:
        argv = self.argv(*args)
        cmd = " ".join(shlex.quote(a) for a in argv)
        child_env = None
        if env:
            child_env = {**os.environ, **env}
        logger.debug("Running: %s", cmd)
        p = subprocess.run(argv, capture_output=True, text=True, env=child_env)
        out, err = p.stdout or "", p.stderr or ""
        for line in out.splitlines():
            logger.debug("acme.sh: %s", line)
        for line in err.splitlines():
            logger.debug("acme.sh[stderr]: %s", line)
        if check and p.returncode not in ok_codes:
            raise AcmeCommandError(argv, p.returncode, out, err)
        return AcmeResult(p.returncode, out, err, cmd)
