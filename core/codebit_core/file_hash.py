"""
file_hash.py — CodeBit content hashes

The 'hash' property of a CodeBit is "SHA256:" followed by the hex digest of
the file. Windows line endings ("\\r\\n") are normalized to "\\n" before
hashing so a checkout on any platform hashes the same. This is done whether
or not the file is text.
"""

import hashlib
import logging

logger = logging.getLogger(__name__)

HASH_PREFIX = "SHA256:"
CHUNK_SIZE = 8192


def compute_hash(stream):
    """Hash a binary stream with CRLF normalized to LF.

    Args:
        stream: Binary file-like object, read to the end in 8KB chunks.

    Returns:
        'SHA256:' followed by the uppercase hex digest.
    """
    sha256 = hashlib.sha256()
    pending_cr = False
    total = 0
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if pending_cr:
            chunk = b'\r' + chunk
            pending_cr = False
        # A trailing CR may pair with an LF at the start of the next chunk
        if chunk.endswith(b'\r'):
            chunk = chunk[:-1]
            pending_cr = True
        sha256.update(chunk.replace(b'\r\n', b'\n'))
    if pending_cr:
        sha256.update(b'\r')
    logger.debug("Hashed %d byte(s)", total)
    return HASH_PREFIX + sha256.hexdigest().upper()


def compute_file_hash(file_path):
    """Hash a file on disk; see compute_hash()."""
    with open(file_path, 'rb') as f:
        return compute_hash(f)


def hashes_match(a, b):
    """Compare two hash strings, ignoring the case of the hex digits."""
    if not a or not b:
        return False
    a_prefix, _, a_digest = a.partition(':')
    b_prefix, _, b_digest = b.partition(':')
    return (a_prefix.upper() == b_prefix.upper()
            and a_digest.upper() == b_digest.upper())
