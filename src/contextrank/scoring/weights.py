"""
Weight profiles for the relevance scorer.
"""

import threading
from typing import Any, Dict, List, Mapping, Optional, Union

from contextrank.core.exceptions import ConfigurationError, ValidationError
from contextrank.core.logging import logger
from contextrank.models.scoring import WeightProfile

BUILTIN_PROFILES: Dict[str, WeightProfile] = {
    "default": WeightProfile(),
    "precision": WeightProfile(
        semantic_similarity=0.40,
        contextual_relevance=0.25,
        historical_success=0.20,
        co_occurrence=0.05,
        user_preference=0.05,
        task_complexity=0.03,
        performance_metrics=0.02,
    ),
    "exploration": WeightProfile(
        semantic_similarity=0.20,
        contextual_relevance=0.15,
        historical_success=0.10,
        co_occurrence=0.20,
        user_preference=0.15,
        task_complexity=0.15,
        performance_metrics=0.05,
    ),
}


class WeightProfileRegistry:
    """
    Named weight profiles.

    Built-in profiles can be shadowed by custom ones of the same name.
    """

    def __init__(
        self,
        default_profile: str = "default",
        custom_profiles: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        self._profiles: Dict[str, WeightProfile] = dict(BUILTIN_PROFILES)
        self._lock = threading.Lock()

        for name, weights in (custom_profiles or {}).items():
            try:
                self._profiles[name] = WeightProfile(**weights)
            except ValueError as e:
                raise ConfigurationError(f"Invalid weight profile {name}: {e}", cause=e)

        if default_profile not in self._profiles:
            raise ConfigurationError(f"Unknown default weight profile: {default_profile}")
        self.default_profile = default_profile

    def register(self, name: str, profile: WeightProfile) -> None:
        if not name:
            raise ValidationError("Weight profile name cannot be empty")
        if sum(profile.weights().values()) <= 0:
            raise ValidationError(f"Weight profile {name} has no positive weight")
        with self._lock:
            self._profiles[name] = profile
        logger.info("Weight profile registered", name=name)

    def resolve(self, profile: Union[str, WeightProfile, None]) -> WeightProfile:
        """
        Profile for a scoring call.

        Raises:
            ValidationError: Unknown profile name
        """
        if isinstance(profile, WeightProfile):
            return profile
        name = profile or self.default_profile
        with self._lock:
            found = self._profiles.get(name)
        if found is None:
            error = ValidationError(
                f"Unknown weight profile: {name}", context={"profile": name}
            )
            error.add_suggestion(f"Known profiles: {', '.join(self.names())}")
            raise error
        return found

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._profiles)
