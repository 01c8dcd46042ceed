# acme-cf/errors.py
import shlex


class AcmeSetupError(RuntimeError):
    """Base class for every fatal condition; the CLI exits non-zero on these."""


class PrivilegeError(AcmeSetupError):
    """Raised when the process is not running as root."""


class SecretStoreError(AcmeSetupError):
    """Raised when the credentials file exists but cannot be read, or cannot be written."""


class IncompleteCredentials(AcmeSetupError):
    """Raised when API key, account email or domain is still empty after resolution."""
    def __init__(self, missing: list[str]):
        super().__init__("Missing credential fields: " + ", ".join(missing))
        self.missing = missing


class ProvisioningError(AcmeSetupError):
    """Raised when acme.sh cannot be made available in its home directory."""


class FetchFailed(ProvisioningError):
    """The installer script could not be downloaded."""


class InstallerFailed(ProvisioningError):
    """The installer script ran but exited non-zero."""
    def __init__(self, message: str, returncode: int, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class PostInstallVerificationFailed(ProvisioningError):
    """The installer reported success but acme.sh is still missing."""


class IssuanceFailed(AcmeSetupError):
    """acme.sh --issue failed for the target domain."""
    def __init__(self, domain: str, account_email: str, log_file: str, detail: str = ""):
        msg = (f"Certificate issuance failed for {domain} "
               f"(account email: {account_email or '?'}). "
               f"Check the DNS API permissions and DNS propagation. Log: {log_file}")
        if detail:
            msg += f"\n{detail}"
        super().__init__(msg)
        self.domain = domain
        self.account_email = account_email
        self.log_file = log_file


class InstallFailed(AcmeSetupError):
    """acme.sh --install-cert failed, or the output directory could not be created."""
    def __init__(self, domain: str, cert_dir: str, log_file: str, detail: str = ""):
        msg = f"Certificate installation failed for {domain} into {cert_dir}. Log: {log_file}"
        if detail:
            msg += f"\n{detail}"
        super().__init__(msg)
        self.domain = domain
        self.cert_dir = cert_dir
        self.log_file = log_file


class AcmeCommandError(RuntimeError):
    """A single acme.sh child process exited non-zero."""
    def __init__(self, argv: list[str], returncode: int, stdout: str, stderr: str):
        self.argv = argv
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(
            f"acme.sh cmd failed (exit {returncode}):\n{self.cmd}\n"
            f"--- stdout ---\n{self.stdout}\n--- stderr ---\n{self.stderr}"
        )

    @property
    def cmd(self) -> str:
        return " ".join(shlex.quote(a) for a in self.argv)
