"""Key, password and CA certificate generation."""

from __future__ import annotations

import datetime
import secrets
import string

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from .errors import MissingOrganizationError

PASSWORD_ALPHABET = string.ascii_letters + string.digits

CURVES: dict[str, ec.EllipticCurve] = {
    "p256": ec.SECP256R1(),
    "p384": ec.SECP384R1(),
    "p521": ec.SECP521R1(),
}

CA_VALIDITY = datetime.timedelta(days=3650)


def generate_password(length: int = 12) -> str:
    """Generate a random alphanumeric password from a CSPRNG."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def generate_ec_key(curve: str = "p256") -> ec.EllipticCurvePrivateKey:
    """Generate an elliptic-curve private key.

    Args:
        curve: One of p256, p384, p521

    Returns:
        The private key
    """
    try:
        return ec.generate_private_key(CURVES[curve])
    except KeyError as e:
        raise ValueError(f"Unsupported curve {curve}") from e


def private_key_pem(key: ec.EllipticCurvePrivateKey, password: str | None = None) -> bytes:
    """Encode a private key as traditional OpenSSL PEM.

    With a password the block is encrypted (Proc-Type/DEK-Info AES-256-CBC),
    the format the Go tooling of the signing workloads reads.
    """
    encryption: serialization.KeySerializationEncryption
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=encryption,
    )


def load_private_key(pem: bytes, password: str | bytes | None = None) -> ec.EllipticCurvePrivateKey:
    """Load a (possibly encrypted) PEM private key.

    Raises:
        ValueError: the data is not a private key or the password is wrong
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    key = serialization.load_pem_private_key(pem, password=password or None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ValueError("Only elliptic-curve private keys are supported")
    return key


def public_key_pem(key: ec.EllipticCurvePrivateKey | ec.EllipticCurvePublicKey) -> bytes:
    """PKIX PEM encoding of the public half."""
    public = key.public_key() if isinstance(key, ec.EllipticCurvePrivateKey) else key
    return public.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_der(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_from_private(pem: bytes, password: str | bytes | None = None) -> bytes:
    """Derive the PKIX public key PEM from a private key PEM."""
    return public_key_pem(load_private_key(pem, password))


def same_public_key(a: bytes, b: bytes) -> bool:
    """Compare two public key PEMs by their DER content."""
    try:
        der_a = serialization.load_pem_public_key(a).public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        der_b = serialization.load_pem_public_key(b).public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
    except ValueError:
        return False
    return der_a == der_b


def create_ca_certificate(
    key: ec.EllipticCurvePrivateKey,
    common_name: str,
    organization: str | None,
    email: str | None = None,
    validity: datetime.timedelta = CA_VALIDITY,
) -> bytes:
    """Create a self-signed CA certificate.

    Args:
        key: CA private key
        common_name: Subject common name
        organization: Subject organization, required
        email: Organization email, added as subject alternative name
        validity: Certificate lifetime

    Returns:
        PEM encoded certificate

    Raises:
        MissingOrganizationError: organization is empty
    """
    if not organization:
        raise MissingOrganizationError("organizationName is required to generate the CA certificate")

    attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization)]
    if common_name:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    subject = x509.Name(attributes)

    now = datetime.datetime.now(tz=datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + validity)
        .add_extension(x509.BasicConstraints(ca=True, path_length=1), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=False,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
    )
    if email:
        builder = builder.add_extension(x509.SubjectAlternativeName([x509.RFC822Name(email)]), critical=False)

    cert = builder.sign(key, hashes.SHA384())
    return cert.public_bytes(serialization.Encoding.PEM)


def last_certificate_pem(chain: bytes) -> bytes:
    """Return the last certificate of a PEM chain, which is its root."""
    certs = x509.load_pem_x509_certificates(chain)
    if not certs:
        raise ValueError("no certificate found")
    return certs[-1].public_bytes(serialization.Encoding.PEM)
