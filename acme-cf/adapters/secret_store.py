# adapters/secret_store.py
import logging
import os
import shlex
import tempfile

from pydantic import SecretStr

from errors import SecretStoreError
from models import (CredentialRecord, LoadResult, RecordState,
                    ENV_API_KEY, ENV_ACCOUNT_EMAIL, STORE_DOMAIN_KEY)

logger = logging.getLogger(__name__)


def _parse_lines(text: str) -> dict[str, str]:
    """
    Parse the shell-sourceable credentials file:
      export CF_Key="abc"        -> {"CF_Key": "abc"}
      CF_Email=me@example.com    -> {"CF_Email": "me@example.com"}
      # comment / blank line     -> ignored
      domain=example.org # prod  -> {"domain": "example.org"}
    """
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        try:
            parts = shlex.split(value, comments=True)
        except ValueError:
            parts = [value.strip().strip('"').strip("'")]
        if key:
            data[key] = " ".join(parts)
    return data


class SecretStore:
    """
    Credentials file adapter (API key, account email, target domain).

    load() reports a missing file as NOT_FOUND and raises SecretStoreError
    for any other read failure; save() always rewrites the whole
    record through a 0600 temp file that is renamed over the target.
    """
    def __init__(self, path: str | os.PathLike):
        self.path = os.fspath(path)

    def load(self) -> LoadResult:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError:
            return LoadResult(state=RecordState.NOT_FOUND)
        except UnicodeDecodeError as e:
            raise SecretStoreError(f"Credentials file {self.path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise SecretStoreError(f"Reading credentials file {self.path} failed: {e}") from e

        values = _parse_lines(text)
        record = CredentialRecord(
            api_key=SecretStr(values.get(ENV_API_KEY, "")),
            account_email=values.get(ENV_ACCOUNT_EMAIL, ""),
            target_domain=values.get(STORE_DOMAIN_KEY, ""),
        )
        state = RecordState.COMPLETE if record.is_complete else RecordState.INCOMPLETE
        return LoadResult(state=state, record=record)

    def save(self, record: CredentialRecord) -> None:
        parent = os.path.dirname(os.path.abspath(self.path))
        body = (
            f"export {ENV_API_KEY}={shlex.quote(record.api_key.get_secret_value())}\n"
            f"export {ENV_ACCOUNT_EMAIL}={shlex.quote(record.account_email)}\n"
            f"export {STORE_DOMAIN_KEY}={shlex.quote(record.target_domain)}\n"
        )
        tmp_path = None
        try:
            os.makedirs(parent, mode=0o700, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{os.path.basename(self.path)}.", dir=parent)
            # mode is set before any secret reaches the file
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise SecretStoreError(f"Writing credentials file {self.path} failed: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
        logger.info("Credentials and domain written to %s (mode 600).", self.path)
