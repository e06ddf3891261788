"""Searchable Index Hashing

Deterministic SHA-256 digests of plaintext values so equality lookups can
run against encrypted columns without decrypting them.

The digest is unsalted so that the same input always maps to the same
index value. Low-entropy inputs are therefore open to dictionary attacks;
never route secrets through this path, and never use it in place of
encryption.
"""

import hashlib


class IndexHasher:
    """Deterministic one-way digest for equality search"""

    algorithm = "sha256"

    def hash_for_indexing(self, plaintext: str) -> str:
        """Hash a plaintext value for indexing

        Args:
            plaintext: Value to index

        Returns:
            64-character lowercase hex digest
        """
        if not isinstance(plaintext, str):
            raise TypeError("hash_for_indexing expects a string")
        return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def hash_for_indexing(plaintext: str) -> str:
    return IndexHasher().hash_for_indexing(plaintext)
