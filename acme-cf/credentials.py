# acme-cf/credentials.py
import logging
import os
from collections.abc import Mapping
from typing import Optional, Protocol

import typer
from pydantic import SecretStr

from adapters.secret_store import SecretStore
from errors import IncompleteCredentials
from logs import redact
from models import (CredentialRecord, RecordState, ResolvedCredentials,
                    ENV_API_KEY, ENV_ACCOUNT_EMAIL, STORE_DOMAIN_KEY)

logger = logging.getLogger(__name__)


class InputProvider(Protocol):
    def prompt(self, label: str, default: str = "", secret: bool = False, field: str = "") -> str: ...

    def confirm(self, question: str, default: bool = False) -> bool: ...


class TerminalInput:
    """Interactive prompts on the controlling terminal."""

    def prompt(self, label: str, default: str = "", secret: bool = False, field: str = "") -> str:
        value = typer.prompt(label, default=default, show_default=bool(default) and not secret)
        return (value or "").strip()

    def confirm(self, question: str, default: bool = False) -> bool:
        return typer.confirm(question, default=default)


class NoInput:
    """Used with --non-interactive: keeps what exists and cannot invent values."""

    def prompt(self, label: str, default: str = "", secret: bool = False, field: str = "") -> str:
        if not default:
            raise IncompleteCredentials([field or label])
        return default

    def confirm(self, question: str, default: bool = False) -> bool:
        return default


class CredentialResolver:
    """
    Merges the credentials file, the CF_Key/CF_Email environment overrides and
    operator input into one ResolvedCredentials.

    Honors:
      - environment over file for the API key and account email, field by field
      - an explicit domain over the file's domain (a mismatch is warned about)
      - a complete stored record is only rewritten if the operator asks to
    """
    def __init__(self, store: SecretStore, inputs: InputProvider,
                 environ: Optional[Mapping[str, str]] = None):
        self.store = store
        self.inputs = inputs
        self.environ = os.environ if environ is None else environ

    def resolve(self, explicit_domain: Optional[str] = None) -> ResolvedCredentials:
        logger.info("Checking credentials file: %s", self.store.path)
        loaded = self.store.load()
        record = loaded.record

        if loaded.state is RecordState.NOT_FOUND:
            logger.info("Credentials file %s does not exist.", self.store.path)
        elif loaded.state is RecordState.INCOMPLETE:
            logger.info("Credentials file is incomplete.")
            for name in record.missing_fields():
                logger.info(" - missing %s", name)
        else:
            logger.info("Credentials file contains %s, %s and %s.",
                        ENV_API_KEY, ENV_ACCOUNT_EMAIL, STORE_DOMAIN_KEY)

        if explicit_domain and record.target_domain and explicit_domain != record.target_domain:
            logger.warning("Domain %s given on the command line differs from %s in %s; using %s.",
                           explicit_domain, record.target_domain, self.store.path, explicit_domain)

        needs_update = True
        if loaded.state is RecordState.COMPLETE:
            question = (f"Credentials file {self.store.path} already holds valid values. "
                        f"Modify {ENV_API_KEY}, {ENV_ACCOUNT_EMAIL} and {STORE_DOMAIN_KEY}?")
            if self.inputs.confirm(question, default=False):
                logger.info("Operator chose to modify the stored credentials.")
            else:
                logger.info("Keeping the stored credentials.")
                needs_update = False

        if needs_update:
            record = self._collect(self._overlay(record, explicit_domain))
            self.store.save(record)

        return self._finalize(record, explicit_domain)

    def _env(self, name: str) -> str:
        return (self.environ.get(name) or "").strip()

    def _overlay(self, record: CredentialRecord, explicit_domain: Optional[str]) -> CredentialRecord:
        return CredentialRecord(
            api_key=SecretStr(self._env(ENV_API_KEY) or record.api_key.get_secret_value()),
            account_email=self._env(ENV_ACCOUNT_EMAIL) or record.account_email,
            target_domain=explicit_domain or record.target_domain,
        )

    def _collect(self, current: CredentialRecord) -> CredentialRecord:
        logger.info("Enter the Cloudflare API credentials and target domain "
                    "(press Enter to keep the value in brackets).")
        email = self._ask(ENV_ACCOUNT_EMAIL, "Cloudflare account email (CF_Email)",
                          current.account_email)
        logger.info("[confirm] CF_Email: %s", email)
        key = self._ask(ENV_API_KEY, "Cloudflare Global API Key (CF_Key)",
                        current.api_key.get_secret_value(), secret=True)
        logger.info("[confirm] CF_Key: %s", redact(key))
        domain = self._ask(STORE_DOMAIN_KEY, "Domain to request the certificate for (domain)",
                           current.target_domain)
        logger.info("[confirm] domain: %s", domain)
        return CredentialRecord(api_key=SecretStr(key), account_email=email, target_domain=domain)

    def _ask(self, field: str, label: str, default: str, secret: bool = False) -> str:
        value = ""
        while not value:
            value = self.inputs.prompt(label, default=default, secret=secret, field=field) or default
            if not value:
                logger.warning("Value cannot be empty.")
        return value

    def _finalize(self, record: CredentialRecord, explicit_domain: Optional[str]) -> ResolvedCredentials:
        merged = self._overlay(record, explicit_domain)
        missing = merged.missing_fields()
        if missing:
            raise IncompleteCredentials(missing)
        if self._env(ENV_API_KEY):
            logger.info("Using %s from the environment.", ENV_API_KEY)
        if self._env(ENV_ACCOUNT_EMAIL):
            logger.info("Using %s from the environment.", ENV_ACCOUNT_EMAIL)
        logger.info("Target domain: %s", merged.target_domain)
        return ResolvedCredentials(api_key=merged.api_key,
                                   account_email=merged.account_email,
                                   target_domain=merged.target_domain)
