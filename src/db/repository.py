"""Protocol repository (can implement later for a key-value store / simple JSON file etc.)"""

from typing import Protocol

from src.core.models import ProfileModel


class ProfileRepository(Protocol):
    """Persistence of player profiles, keyed by a stable profile id."""

    def get_profile(self, profile_id: str) -> ProfileModel | None:
        """Get profile by ID, if record exists."""
        ...

    def save_profile(self, profile: ProfileModel) -> ProfileModel:
        """Create or overwrite the record, return the stored data."""
        ...

    def delete_profile(self, profile_id: str) -> ProfileModel | None:
        """Remove a profile's record."""
        ...
