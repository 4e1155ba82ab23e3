"""Self-signed credential generation.

Builds a self-signed X.509 certificate for a list of subject alternative
names and serializes it, together with its key pair, in a single encoding:

  PEM: certificate, SubjectPublicKeyInfo and PKCS#8 private key as armored text
  DER: the same three structures as raw binary DER

The key algorithm (ECDSA P-256 / SHA-256), distinguished name and validity
period are fixed and not exposed to callers.
"""
import enum
import hashlib
import ipaddress
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Sequence

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

COMMON_NAME = 'self signed cert'
NOT_VALID_BEFORE = datetime(1975, 1, 1, tzinfo=timezone.utc)
NOT_VALID_AFTER = datetime(4096, 1, 1, tzinfo=timezone.utc)

logger = logging.getLogger('selfsigned-credentials')


class CredentialsError(Exception):
    """Base class for every failure of the tool; ``stage`` names where it happened."""
    stage = 'credentials'


class InputError(CredentialsError):
    stage = 'input'


class CertificateGenerationError(CredentialsError):
    stage = 'certificate generation'


class SerializationError(CredentialsError):
    stage = 'serialization'


class PersistenceError(CredentialsError):
    stage = 'persistence'


class Encoding(enum.Enum):
    PEM = 'pem'
    DER = 'der'

    @classmethod
    def parse(cls, name: str) -> 'Encoding':
        """Case-insensitive lookup; anything but pem/der is an InputError."""
        try:
            return cls(str(name).lower())
        except ValueError:
            choices = ', '.join(e.value for e in cls)
            raise InputError(f'Unsupported encoding {name!r} (expected one of: {choices})') from None

    @property
    def serialization_encoding(self) -> serialization.Encoding:
        if self is Encoding.PEM:
            return serialization.Encoding.PEM
        return serialization.Encoding.DER


@dataclass(frozen=True)
class SelfSignedCertificate:
    certificate: x509.Certificate
    private_key: ec.EllipticCurvePrivateKey

    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self.private_key.public_key()

    def fingerprint(self) -> str:
        der = self.certificate.public_bytes(serialization.Encoding.DER)
        return hashlib.sha256(der).hexdigest()


@dataclass(frozen=True)
class Credentials:
    certificate: bytes
    public_key: bytes
    private_key: bytes
    encoding: Encoding


def _general_name(name: str) -> x509.GeneralName:
    if not name or any(c.isspace() for c in name):
        raise CertificateGenerationError(f'Invalid subject alternative name {name!r}')
    try:
        return x509.IPAddress(ipaddress.ip_address(name))
    except ValueError:
        pass
    try:
        return x509.DNSName(name)
    except (ValueError, TypeError) as e:
        raise CertificateGenerationError(f'Invalid subject alternative name {name!r}: {e}') from e


def generate(subject_alt_names: Sequence[str]) -> SelfSignedCertificate:
    """Create a fresh key pair and a certificate signed by it.

    IP literals become iPAddress entries, everything else a dNSName; order is
    kept. With no names the certificate carries no SAN extension at all.
    """
    general_names: List[x509.GeneralName] = [_general_name(n) for n in subject_alt_names]
    try:
        priv = ec.generate_private_key(ec.SECP256R1())
        subject = issuer = x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, COMMON_NAME),
        ])
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(priv.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(NOT_VALID_BEFORE)
            .not_valid_after(NOT_VALID_AFTER)
        )
        if general_names:
            builder = builder.add_extension(x509.SubjectAlternativeName(general_names), critical=False)
        cert = builder.sign(private_key=priv, algorithm=hashes.SHA256())
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CertificateGenerationError(f'Cannot build self-signed certificate: {e}') from e
    generated = SelfSignedCertificate(certificate=cert, private_key=priv)
    logger.info('Generated certificate (sans=%d, sha256=%s...)', len(general_names), generated.fingerprint()[:16])
    return generated


def serialize(certificate: SelfSignedCertificate, encoding: Encoding) -> Credentials:
    """Encode certificate, public key and private key uniformly in ``encoding``."""
    if not isinstance(encoding, Encoding):
        raise TypeError(f'Not an encoding: {encoding!r}')
    fmt = encoding.serialization_encoding
    try:
        cert_bytes = certificate.certificate.public_bytes(fmt)
        pub_bytes = certificate.public_key().public_bytes(
            encoding=fmt,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        priv_bytes = certificate.private_key.private_bytes(
            encoding=fmt,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SerializationError(f'Cannot encode credentials as {encoding.name}: {e}') from e
    return Credentials(
        certificate=cert_bytes,
        public_key=pub_bytes,
        private_key=priv_bytes,
        encoding=encoding,
    )


def generate_credentials(subject_alt_names: Sequence[str], encoding: Encoding) -> Credentials:
    return serialize(generate(subject_alt_names), encoding)
