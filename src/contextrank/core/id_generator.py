"""
Centralized ID generator for contextrank.

Item ids are opaque to the engine; generated ones use a hex32 format.
"""

import secrets


class IDGenerator:
    """
    Centralized ID generator.

    Single format (hex32) across the whole package: 32 lowercase hex characters.
    """

    @staticmethod
    def generate() -> str:
        """
        Generate a hex32 ID.

        Examples:
            >>> IDGenerator.generate()
            'a3f4b2c1d5e6f7a8b9c0d1e2f3a4b5c6'
        """
        return secrets.token_hex(16)

    @staticmethod
    def is_valid_id(id_str: str) -> bool:
        """Check whether a string is a well formed generated ID."""
        if not isinstance(id_str, str) or len(id_str) != 32:
            return False
        return all(c in "0123456789abcdef" for c in id_str)


def generate_id() -> str:
    """Convenience alias for IDGenerator.generate()."""
    return IDGenerator.generate()


def is_valid_id(id_str: str) -> bool:
    """Convenience alias for IDGenerator.is_valid_id()."""
    return IDGenerator.is_valid_id(id_str)
