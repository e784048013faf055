"""
Text normalization shared by the keyword index, keyword scoring and the
hashing embedding provider.
"""

import re
from typing import List

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> List[str]:
    """Lowercased word tokens, duplicates kept, in order of appearance."""
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower())
