"""
Secret kinds and one-time passwords.

A decrypted payload is either a plain secret or an ``otpauth://`` provisioning
URI. OTP records keep the whole URI so codes can be regenerated with the
original algorithm, digit count and period.

Usage:
    from rvault.otp import classify, current_code
    kind = classify(plaintext)
    if isinstance(kind, OtpProvisioningUri):
        print(current_code(kind))
"""

from __future__ import annotations

import base64
import binascii
import logging
import subprocess
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from urllib.parse import parse_qsl, unquote, urlsplit

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.twofactor.totp import TOTP

from rvault.errors import InvalidName, InvalidOtpUri, OtpComputationError, OtpDecodeError
from rvault.models import OtpProvisioningUri, PlainSecret, SecretRecord
from rvault.store import otp_name

logger = logging.getLogger(__name__)

OTP_SCHEME = "otpauth://"

DEFAULT_ALGORITHM = "SHA1"
DEFAULT_DIGITS = 6
DEFAULT_PERIOD = 30

_ALGORITHMS: dict[str, Callable[[], hashes.HashAlgorithm]] = {
    "SHA1": hashes.SHA1,
    "SHA256": hashes.SHA256,
    "SHA512": hashes.SHA512,
}


def classify(plaintext: str) -> PlainSecret | OtpProvisioningUri:
    """Plain secret unless the payload starts with ``otpauth://``."""
    if not plaintext.startswith(OTP_SCHEME):
        return PlainSecret(value=plaintext)
    return parse_uri(plaintext.strip())


def parse_uri(uri: str) -> OtpProvisioningUri:
    """Split an ``otpauth://TYPE/LABEL?PARAMS`` URI without validating it."""
    parts = urlsplit(uri)
    params = {key.lower(): value for key, value in parse_qsl(parts.query)}

    label = unquote(parts.path.lstrip("/"))
    label_issuer = None
    if ":" in label:
        label_issuer, account = label.split(":", 1)
        account = account.strip()
    else:
        account = label

    issuer = params.get("issuer") or label_issuer
    return OtpProvisioningUri(
        uri=uri,
        type=parts.netloc.lower(),
        issuer=issuer.strip() if issuer else None,
        account=account or None,
        shared_secret=params.get("secret") or None,
        parameters=params,
    )


def _decode_secret(secret: str) -> bytes:
    normalized = secret.replace(" ", "").upper()
    normalized += "=" * (-len(normalized) % 8)
    try:
        return base64.b32decode(normalized)
    except binascii.Error as e:
        raise OtpComputationError("OTP shared secret is not valid base32.") from e


def _int_param(otp: OtpProvisioningUri, name: str, default: int) -> int:
    raw = otp.parameters.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise OtpComputationError(f"OTP parameter {name}={raw!r} is not a number.") from e


def current_code(otp: OtpProvisioningUri, now: float | None = None) -> str:
    """Compute the TOTP code for ``now`` (defaults to the current time)."""
    if otp.type != "totp":
        raise OtpComputationError(f"Unsupported OTP type: {otp.type or '(none)'}")
    if not otp.shared_secret:
        raise OtpComputationError("OTP URI has no shared secret.")

    algorithm_name = otp.parameters.get("algorithm", DEFAULT_ALGORITHM).upper()
    algorithm = _ALGORITHMS.get(algorithm_name)
    if algorithm is None:
        raise OtpComputationError(f"Unsupported OTP algorithm: {algorithm_name}")

    digits = _int_param(otp, "digits", DEFAULT_DIGITS)
    period = _int_param(otp, "period", DEFAULT_PERIOD)
    if period <= 0:
        raise OtpComputationError(f"OTP period must be positive, got {period}")

    key = _decode_secret(otp.shared_secret)
    try:
        totp = TOTP(key, digits, algorithm(), period, enforce_key_length=False)
    except (ValueError, TypeError) as e:
        raise OtpComputationError(f"Invalid OTP parameters: {e}") from e

    if now is None:
        now = time.time()
    return totp.generate(int(now)).decode("ascii")


def provision(uri: str) -> SecretRecord:
    """Turn a provisioning URI into the record stored at ``otp/<issuer>/<account>``."""
    uri = uri.strip()
    if not uri.startswith(OTP_SCHEME):
        raise InvalidOtpUri(f"Not an {OTP_SCHEME} URI.")
    otp = parse_uri(uri)
    if not otp.issuer:
        raise InvalidOtpUri("OTP URI has no issuer.")
    if not otp.account:
        raise InvalidOtpUri("OTP URI has no account name.")
    try:
        name = otp_name(otp.issuer, otp.account)
    except InvalidName as e:
        raise InvalidOtpUri(f"OTP issuer or account cannot be used as a name: {e}") from e
    return SecretRecord(name=name, payload=uri)


class QrDecoder(ABC):
    """Barcode decoding collaborator for OTP enrollment images."""

    @abstractmethod
    def decode(self, path: Path) -> list[str]:
        """Return every payload found in the image."""


class ZbarDecoder(QrDecoder):
    """Decode images with zbarimg from the zbar tools."""

    # zbarimg exits 4 when the image holds no barcode
    NO_SYMBOLS = 4

    def __init__(self, executable: str = "zbarimg"):
        self.executable = executable

    def decode(self, path: Path) -> list[str]:
        cmd = [self.executable, "--quiet", "--raw", str(path)]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise OtpDecodeError(f"Failed to run {self.executable}: {e}") from e
        if result.returncode == self.NO_SYMBOLS:
            return []
        if result.returncode != 0:
            raise OtpDecodeError(f"Failed to decode {path}: {result.stderr.strip()}")
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def read_enrollment(source: str, decoder: QrDecoder) -> str:
    """Return the provisioning URI from a raw URI or an image path."""
    source = source.strip()
    if source.startswith(OTP_SCHEME):
        return source

    path = Path(source).expanduser()
    if not path.is_file():
        raise OtpDecodeError(f"Not an {OTP_SCHEME} URI and no such image: {source}")
    payloads = decoder.decode(path)
    if not payloads:
        raise OtpDecodeError(f"No barcode found in {path}")
    if len(payloads) > 1:
        raise OtpDecodeError(f"Found {len(payloads)} barcodes in {path}; expected exactly one.")
    return payloads[0]
