"""
Country catalog: the master country list plus name validation.

Validation never raises for unknown names. It returns a ValidationResult
the caller turns into a 400/404 with a "Did you mean ...?" hint.
"""

from dataclasses import dataclass
from typing import Optional

from catalog.countries import COUNTRY_ALIASES, COUNTRY_CODES
from utils.fuzzy import levenshtein_distance

# Suggest a name only when it is at most this many edits away
MAX_SUGGESTION_DISTANCE = 2

# Substring suggestions need enough characters to be meaningful
MIN_SUBSTRING_LENGTH = 3

UNKNOWN_COUNTRY_CODE = "XX"


@dataclass
class ValidationResult:
    """Outcome of validating a free-text country name."""
    is_valid: bool
    normalized_name: Optional[str] = None
    suggestion: Optional[str] = None

    def error_message(self, original_name: str) -> str:
        """User-facing rejection message, with suggestion when available."""
        message = f"'{original_name}' is not a recognized country name"
        if self.suggestion:
            return f"{message}. Did you mean '{self.suggestion}'?"
        return message


class CountryCatalog:
    """
    Static catalog of valid countries.

    Example:
        >>> catalog = CountryCatalog()
        >>> catalog.validate("USA")
        ValidationResult(is_valid=True, normalized_name='united states', suggestion=None)
        >>> catalog.validate("Frnace")
        ValidationResult(is_valid=False, normalized_name=None, suggestion='france')
    """

    def __init__(
        self,
        country_codes: Optional[dict[str, str]] = None,
        aliases: Optional[dict[str, str]] = None,
    ):
        self._codes = dict(country_codes if country_codes is not None else COUNTRY_CODES)
        self._aliases = dict(aliases if aliases is not None else COUNTRY_ALIASES)
        self._names = sorted(self._codes)

    def all_valid_countries(self) -> list[str]:
        """Master list used to define the work of a bulk refresh (alphabetical)."""
        return list(self._names)

    def is_known(self, name: str) -> bool:
        return name in self._codes

    def country_code(self, name: str) -> str:
        """ISO alpha-2 code for a normalized name, or XX when unknown."""
        return self._codes.get(name.strip().lower(), UNKNOWN_COUNTRY_CODE)

    def validate(self, name: str) -> ValidationResult:
        """
        Validate and normalize a free-text country name.

        Order of checks:
        1. Direct membership (after lowercase + trim)
        2. Alias table ("usa" → "united states")
        3. Best suggestion by edit distance (≤ 2), then substring containment

        Args:
            name: Raw user input

        Returns:
            ValidationResult (never raises for unknown names)
        """
        query = (name or "").strip().lower()
        if not query:
            return ValidationResult(is_valid=False)

        if query in self._codes:
            return ValidationResult(is_valid=True, normalized_name=query)

        alias_target = self._aliases.get(query)
        if alias_target and alias_target in self._codes:
            return ValidationResult(is_valid=True, normalized_name=alias_target)

        return ValidationResult(is_valid=False, suggestion=self._suggest(query))

    def _suggest(self, query: str) -> Optional[str]:
        """Return the single best suggestion for a misspelled name, if any."""
        best_name: Optional[str] = None
        best_distance = MAX_SUGGESTION_DISTANCE + 1

        for candidate in self._names:
            # Distance is at least the length difference; skip hopeless candidates
            if abs(len(candidate) - len(query)) > MAX_SUGGESTION_DISTANCE:
                continue
            distance = levenshtein_distance(query, candidate)
            if distance < best_distance:
                best_name, best_distance = candidate, distance

        if best_name is not None:
            return best_name

        if len(query) < MIN_SUBSTRING_LENGTH:
            return None

        substring_matches = [
            candidate for candidate in self._names
            if query in candidate or candidate in query
        ]
        if not substring_matches:
            return None

        # Closest in length wins; alphabetical order breaks ties
        return min(substring_matches, key=lambda c: (abs(len(c) - len(query)), c))
