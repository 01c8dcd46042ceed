"""Command line entry point for acme-cf-setup.

Issues and installs a Let's Encrypt certificate for the domain stored in the
Cloudflare credentials file, using acme.sh with the ``dns_cf`` DNS-01 hook,
then makes sure acme.sh's renewal cron job exists. Safe to run repeatedly.
"""
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from adapters.acme_sh import AcmeSh
from adapters.cron import RenewalScheduler
from adapters.installer import AcmeInstaller
from adapters.secret_store import SecretStore
from credentials import CredentialResolver, InputProvider, NoInput, TerminalInput
from errors import AcmeSetupError, PrivilegeError
from logs import setup_logging
from models import (DEFAULT_ACME_HOME, DEFAULT_CERT_DIR, DEFAULT_CRED_FILE, DEFAULT_SERVER,
                    InstalledCertificate, OrchestratorConfig)
from orchestrator import CertificateOrchestrator

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    help="Automate Let's Encrypt certificates with acme.sh and Cloudflare DNS.",
)

_console = Console()


def check_root() -> None:
    if os.geteuid() != 0:
        raise PrivilegeError("Run this script as root, or use 'sudo'.")
    logger.info("Running with root privileges.")


def run_setup(config: OrchestratorConfig, inputs: InputProvider) -> InstalledCertificate:
    """Resolve credentials, provision acme.sh, issue/install, schedule renewal."""
    check_root()

    store = SecretStore(config.credentials_file)
    creds = CredentialResolver(store, inputs).resolve(config.domain)

    acme = AcmeSh(config.acme_home, debug=config.debug)
    AcmeInstaller(acme).ensure(config.account_email)

    logger.info("Starting certificate automation for %s", creds.target_domain)
    installed = CertificateOrchestrator(acme, config).run(creds)
    RenewalScheduler(acme).ensure()
    logger.info("SSL certificate setup for %s completed successfully.", creds.target_domain)
    return installed


def _summary(installed: InstalledCertificate) -> None:
    table = Table(title=f"Certificate for {installed.domain}")
    table.add_column("Item", style="bright_green", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Private key", str(installed.key_file))
    table.add_row("Full chain", str(installed.fullchain_file))
    table.add_row("Issued this run", "yes" if installed.issued else "no (not due for renewal)")
    table.add_row("Reload command", installed.reload_cmd or "-")
    _console.print(table)


@app.command()
def main(
    credentials: Path = typer.Option(
        Path(DEFAULT_CRED_FILE), "-c", "--credentials",
        dir_okay=False,
        help="Cloudflare credentials file (export CF_Key, CF_Email and domain). "
             "Prompted for when missing or incomplete. CF_Key/CF_Email in the "
             "environment take precedence.",
    ),
    email: Optional[str] = typer.Option(
        None, "-m", "--email", help="Email for Let's Encrypt account registration/recovery."),
    cert_dir: Path = typer.Option(
        Path(DEFAULT_CERT_DIR), "--cert-dir", file_okay=False,
        help="Directory to install the certificate and key into."),
    reloadcmd: Optional[str] = typer.Option(
        None, "-r", "--reloadcmd",
        help='Command acme.sh runs after install/renewal, e.g. "systemctl reload nginx".'),
    acme_home: Path = typer.Option(
        Path(DEFAULT_ACME_HOME), "--acme-home", envvar="ACME_HOME", file_okay=False,
        help="acme.sh installation directory."),
    domain: Optional[str] = typer.Option(
        None, "-d", "--domain",
        help="Domain to certify; overrides the domain in the credentials file."),
    server: str = typer.Option(DEFAULT_SERVER, "--server", help="ACME CA name or directory URL."),
    cert_suffix: str = typer.Option(".crt", "--cert-suffix", help="Full chain file suffix (.crt or .cer)."),
    upgrade: bool = typer.Option(True, "--upgrade/--no-upgrade", help="Upgrade acme.sh before issuing."),
    debug: bool = typer.Option(False, "--debug", envvar="ACME_DEBUG", help="Run acme.sh with --debug 2."),
    non_interactive: bool = typer.Option(
        False, "--non-interactive", help="Never prompt; fail if credentials are incomplete."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show acme.sh output."),
) -> None:
    setup_logging(verbose)
    try:
        config = OrchestratorConfig(
            credentials_file=credentials, cert_dir=cert_dir, reload_cmd=reloadcmd,
            account_email=email, acme_home=acme_home, domain=domain, server=server,
            cert_suffix=cert_suffix, upgrade=upgrade, debug=debug,
            interactive=not non_interactive,
        )
    except ValidationError as e:
        raise typer.BadParameter(str(e)) from e

    inputs: InputProvider = TerminalInput() if config.interactive else NoInput()
    try:
        installed = run_setup(config, inputs)
    except AcmeSetupError as e:
        logger.error("%s", e)
        raise typer.Exit(code=1) from e
    except (typer.Abort, KeyboardInterrupt) as e:
        logger.error("Aborted by operator.")
        raise typer.Exit(code=1) from e
    _summary(installed)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
