from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Protocol

import structlog

from promote_release.core import SigningError

log = structlog.get_logger(__name__)


class SigningBackend(Protocol):
    def detached_signature(self, data: bytes) -> str:
        """ASCII-armored detached signature over `data`."""
        ...


class GnupgBackend:
    """
    OpenPGP signatures through the `gpg` binary (python-gnupg).

    The secret key is imported into a private GNUPGHOME so the host's
    keyrings are never read or modified.
    """

    def __init__(self, *, key_file: Path, password_file: Path, gpg_binary: str = "gpg") -> None:
        import gnupg  # type: ignore[import-untyped]

        try:
            key_data = Path(key_file).read_text(encoding="utf-8")
            self._passphrase = Path(password_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise SigningError(f"failed to read signing key material: {e}") from e

        self._home = tempfile.mkdtemp(prefix="promote-release-gnupg-")
        try:
            self._gpg = gnupg.GPG(gpgbinary=gpg_binary, gnupghome=self._home)
        except (OSError, ValueError, RuntimeError) as e:
            self.close()
            raise SigningError(f"failed to start gpg: {e}") from e

        imported = self._gpg.import_keys(key_data, passphrase=self._passphrase)
        fingerprints = [fp for fp in (imported.fingerprints or []) if fp]
        if not fingerprints or not self._gpg.list_keys(secret=True):
            self.close()
            raise SigningError(f"no secret key could be imported from {key_file}")
        self.fingerprint = fingerprints[0]
        log.info("loaded signing key", fingerprint=self.fingerprint)

    def detached_signature(self, data: bytes) -> str:
        sig = self._gpg.sign(
            data,
            keyid=self.fingerprint,
            passphrase=self._passphrase,
            detach=True,
            binary=False,
            extra_args=["--digest-algo", "SHA512"],
        )
        armored = str(sig)
        if not armored:
            raise SigningError(f"gpg failed to sign: {getattr(sig, 'status', None)}")
        return armored

    def close(self) -> None:
        shutil.rmtree(self._home, ignore_errors=True)
