import hashlib


def sha256_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def fingerprint(b: bytes, *, length: int = 10) -> str:
    """
    Short content fingerprint used in delivery names and unit identities.
    """
    return sha256_bytes(b)[:length]
