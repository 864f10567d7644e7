# chatline/core/security.py

from chatline.utils.logger import logger


def signed_registration_payload(user_id: str, timestamp: str) -> str:
    """The string a client signs to prove it owns the key it registers."""
    return f"{user_id}|{timestamp}"


def verify_pgp_signature(public_key_text: str, signature_text: str, data: str) -> bool:
    """
    Verify a detached PGP signature for a given data string using the
    provided armored public key.
    """
    import pgpy

    try:
        key, _ = pgpy.PGPKey.from_blob(public_key_text)
        sig = pgpy.PGPSignature.from_blob(signature_text)
        return bool(key.verify(data, sig))
    except Exception as e:
        logger.warning("Signature verification failed", extra={"error": str(e)})
        return False
