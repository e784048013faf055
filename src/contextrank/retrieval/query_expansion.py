"""
Query expansion for the semantic-keyword search mode.

LexicalVariantExpander normalizes naming conventions so a query finds items
regardless of style:
- snake_case ≈ camelCase ≈ kebab-case ≈ PascalCase
- convertCurrency ≈ convert_currency ≈ ConvertCurrency
- rate ≈ rates

OllamaQueryExpander asks a local model for related terms instead.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from contextrank.core.exceptions import ProviderUnavailableError
from contextrank.core.logging import logger
from contextrank.core.ollama import OllamaClient

STOPWORDS = frozenset(
    {
        "the",
        "in",
        "at",
        "of",
        "for",
        "and",
        "or",
        "but",
        "is",
        "are",
        "was",
        "were",
        "been",
        "have",
        "has",
        "with",
        "from",
        "into",
        "to",
        "a",
        "an",
        "if",
        "else",
        "find",
        "tool",
    }
)


@dataclass
class TermVariation:
    """A variation of a term with its transformation type."""

    term: str
    variation_type: str  # 'original', 'snake', 'camel', 'pascal', 'kebab', 'plural', 'singular'
    confidence: float = 1.0


class LexicalVariantExpander:
    """
    Appends naming-style and plural/singular variants of query identifiers.

    This is NOT semantic similarity, it is purely syntactic transformation.
    The expanded text is the original query followed by the new variants.
    """

    def __init__(self, max_variations: int = 5, min_term_length: int = 3):
        self.max_variations = max_variations
        self.min_term_length = min_term_length

        self.snake_pattern = re.compile(r"^[a-z_][a-z0-9_]*$")
        self.camel_pattern = re.compile(r"^[a-z][a-zA-Z0-9]*$")
        self.pascal_pattern = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
        self.kebab_pattern = re.compile(r"^[a-z]+(-[a-z]+)*$")

        logger.info("LexicalVariantExpander initialized", max_variations=max_variations)

    def expand(self, text: str) -> str:
        """
        Expand a query with naming variations.

        Args:
            text: Original query

        Returns:
            Original query plus up to max_variations variants per identifier
        """
        identifiers = self._extract_identifiers(text)
        if not identifiers:
            return text

        known = {token.lower() for token in re.findall(r"\w+", text)}
        extra: List[str] = []
        for identifier in identifiers:
            added = 0
            for variation in self._generate_variations(identifier):
                if added >= self.max_variations:
                    break
                if variation.variation_type == "original":
                    continue
                term = variation.term
                if term.lower() in known:
                    continue
                known.add(term.lower())
                extra.append(term)
                added += 1

        if not extra:
            return text

        logger.debug("Lexical expansion", original=text[:50], added=len(extra))
        return f"{text} {' '.join(extra)}"

    def _extract_identifiers(self, query: str) -> List[str]:
        """Identifiers in first-seen order, stopwords and short tokens removed."""
        tokens = re.findall(r"\b[a-zA-Z_][a-zA-Z0-9_-]*\b", query)
        seen: Dict[str, None] = {}
        for token in tokens:
            if token.lower() in STOPWORDS or len(token) < self.min_term_length:
                continue
            seen.setdefault(token, None)
        return list(seen)

    def _generate_variations(self, identifier: str) -> List[TermVariation]:
        """Generate naming and number variations for an identifier."""
        variations = [TermVariation(identifier, "original", 1.0)]

        current_style = self._detect_style(identifier)
        words = self._parse_identifier(identifier, current_style)
        if not words:
            return variations

        if len(words) > 1:
            if current_style != "snake":
                variations.append(TermVariation("_".join(words), "snake", 0.9))
            if current_style != "camel":
                camel = words[0] + "".join(w.capitalize() for w in words[1:])
                variations.append(TermVariation(camel, "camel", 0.9))
            if current_style != "pascal":
                variations.append(
                    TermVariation("".join(w.capitalize() for w in words), "pascal", 0.9)
                )
            # Kebab variants tokenize back into the component words
            variations.append(TermVariation(" ".join(words), "words", 0.8))

        last_word = words[-1]
        other = self._toggle_number(last_word)
        if other:
            kind = "singular" if len(other) < len(last_word) else "plural"
            variations.append(TermVariation("_".join(words[:-1] + [other]), kind, 0.7))

        return variations

    @staticmethod
    def _toggle_number(word: str) -> Optional[str]:
        """Simple singular <-> plural form of an English word."""
        if len(word) < 3:
            return None
        if word.endswith("ies") and len(word) > 4:
            return word[:-3] + "y"
        if word.endswith("ss"):
            return word + "es"
        if word.endswith("s"):
            return word[:-1]
        if word.endswith("y") and word[-2] not in "aeiou":
            return word[:-1] + "ies"
        return word + "s"

    def _detect_style(self, identifier: str) -> str:
        """Detect the naming style of an identifier."""
        if self.snake_pattern.match(identifier):
            return "snake"
        elif self.camel_pattern.match(identifier):
            return "camel"
        elif self.pascal_pattern.match(identifier):
            return "pascal"
        elif self.kebab_pattern.match(identifier):
            return "kebab"
        else:
            return "unknown"

    def _parse_identifier(self, identifier: str, style: str) -> List[str]:
        """Parse identifier into lowercase component words."""
        if style == "snake":
            words = identifier.split("_")
        elif style == "kebab":
            words = identifier.split("-")
        elif style in ("camel", "pascal"):
            # Split on capitals, keeping acronyms like HTTP or XML together
            words = re.findall(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z0-9]+|[A-Z]+", identifier)
        else:
            words = re.split(r"[_\-]+", identifier)

        return [w.lower() for w in words if w]


class OllamaQueryExpander:
    """
    Related search terms from a local Ollama model (/api/generate).

    Raises ProviderUnavailableError on any failure; the search engine then
    keeps the original query and marks the results degraded.
    """

    PROMPT = (
        "List up to {limit} short search terms closely related to the query below. "
        "Answer with the terms only, separated by spaces, on one line.\n\nQuery: {query}"
    )

    def __init__(
        self,
        model: str = "qwen2.5:3b",
        base_url: str = "http://localhost:11434",
        timeout: float = 10.0,
        max_variations: int = 5,
        client: Optional[OllamaClient] = None,
    ):
        self.model = model
        self.max_variations = max_variations
        self.client = client or OllamaClient(base_url=base_url, timeout=timeout)
        logger.info("OllamaQueryExpander initialized", model=model)

    def expand(self, text: str) -> str:
        prompt = self.PROMPT.format(limit=self.max_variations, query=text)
        response = self.client.generate(self.model, prompt, options={"temperature": 0.0})

        terms = re.findall(r"\w+", response)
        if not terms:
            raise ProviderUnavailableError(
                "Query expansion model returned no terms", code="EXPANSION_EMPTY"
            )
        return f"{text} {' '.join(terms)}"

    def close(self) -> None:
        self.client.close()


class NoopQueryExpander:
    """Returns the query unchanged."""

    def expand(self, text: str) -> str:
        return text
