# acme-cf/models.py
import shlex
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

DEFAULT_CRED_FILE = "/root/.cf_credentials"
DEFAULT_CERT_DIR = "/etc/ssl"
DEFAULT_ACME_HOME = "/root/.acme.sh"
DEFAULT_SERVER = "letsencrypt"

# Variable names understood by acme.sh's dns_cf hook; also the store file keys.
ENV_API_KEY = "CF_Key"
ENV_ACCOUNT_EMAIL = "CF_Email"
STORE_DOMAIN_KEY = "domain"


class RecordState(str, Enum):
    NOT_FOUND = "not_found"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


class CredentialRecord(BaseModel):
    """What the credentials file holds. Any field may be empty until resolved."""
    api_key: SecretStr = SecretStr("")
    account_email: str = ""
    target_domain: str = ""

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.api_key.get_secret_value():
            missing.append(ENV_API_KEY)
        if not self.account_email:
            missing.append(ENV_ACCOUNT_EMAIL)
        if not self.target_domain:
            missing.append(STORE_DOMAIN_KEY)
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


class LoadResult(BaseModel):
    state: RecordState
    record: CredentialRecord = Field(default_factory=CredentialRecord)


class ResolvedCredentials(BaseModel):
    """The credential set used for one run. Only the orchestrator exports it to acme.sh."""
    model_config = ConfigDict(frozen=True)

    api_key: SecretStr
    account_email: str
    target_domain: str

    def client_env(self) -> dict[str, str]:
        return {ENV_API_KEY: self.api_key.get_secret_value(),
                ENV_ACCOUNT_EMAIL: self.account_email}


class OrchestratorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    credentials_file: Path = Path(DEFAULT_CRED_FILE)
    cert_dir: Path = Path(DEFAULT_CERT_DIR)
    reload_cmd: Optional[str] = None
    account_email: Optional[str] = None
    acme_home: Path = Path(DEFAULT_ACME_HOME)
    domain: Optional[str] = None
    server: str = DEFAULT_SERVER
    cert_suffix: str = ".crt"
    upgrade: bool = True
    debug: bool = False
    interactive: bool = True

    @field_validator("reload_cmd", "account_email", "domain", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("cert_suffix")
    @classmethod
    def _known_suffix(cls, v: str) -> str:
        v = v if v.startswith(".") else f".{v}"
        if v not in (".crt", ".cer"):
            raise ValueError("cert_suffix must be .crt or .cer")
        return v


class RenewalJobDescriptor(BaseModel):
    """Identity of the cron line acme.sh installs for itself."""
    model_config = ConfigDict(frozen=True)

    command: str
    home: str

    @classmethod
    def for_home(cls, home: str) -> "RenewalJobDescriptor":
        return cls(command=f'"{home}"/acme.sh --cron --home "{home}"', home=home)

    def matches(self, crontab_text: str) -> bool:
        for line in crontab_text.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                words = shlex.split(line)
            except ValueError:
                continue
            if "--cron" not in words:
                continue
            # acme.sh writes: "<home>"/acme.sh --cron --home "<home>" > /dev/null
            homes = [words[i + 1] for i, w in enumerate(words[:-1]) if w == "--home"]
            if self.home in homes:
                return True
        return False


class InstalledCertificate(BaseModel):
    domain: str
    key_file: Path
    fullchain_file: Path
    reload_cmd: Optional[str] = None
    issued: bool = True
