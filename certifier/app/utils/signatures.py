"""
Raw signature primitives over canonical payload bytes.

Supported key types: RSA (PKCS#1 v1.5) and EC (ECDSA), both SHA-256.
Payload construction happens in certifier.app.utils.canonical.
"""

import base64
import binascii
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa


class UnsupportedKeyType(ValueError):
    pass


def sign_bytes(private_key, data: bytes) -> bytes:
    if isinstance(private_key, rsa.RSAPrivateKey):
        return private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return private_key.sign(data, ec.ECDSA(hashes.SHA256()))
    raise UnsupportedKeyType(
        f"Unsupported signing key type: {type(private_key).__name__}"
    )


def verify_bytes(public_key, signature: bytes, data: bytes) -> bool:
    """
    Returns False on a signature mismatch.

    Raises:
        UnsupportedKeyType: if the key is neither RSA nor EC.
    """
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
        else:
            raise UnsupportedKeyType(
                f"Unsupported verification key type: {type(public_key).__name__}"
            )
    except InvalidSignature:
        return False
    return True


def encode_signature(signature: bytes) -> str:
    return base64.b64encode(signature).decode("ascii")


def decode_signature(encoded: Optional[str]) -> Optional[bytes]:
    """Decode a base64 signature payload; None when absent or malformed."""
    if not encoded:
        return None
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return None
