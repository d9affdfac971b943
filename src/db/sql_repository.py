"""Implementation of (Profile)Repository using SQLAlchemy"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.models import ProfileModel
from src.db.schema import DBProfile


class SQLProfileRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_profile(self, profile_id: str) -> ProfileModel | None:
        """Get profile by ID, if record exists."""
        profile_db = self._fetch_profile(profile_id)
        if profile_db:
            return self._to_model(profile_db)
        return None

    def save_profile(self, profile: ProfileModel) -> ProfileModel:
        """Create or overwrite the record, return the stored data."""
        profile_db = self._fetch_profile(profile.profile_id)
        if profile_db is None:
            profile_db = DBProfile(id=profile.profile_id)
            self.db.add(profile_db)
        profile_db.name = profile.name
        profile_db.wins = profile.wins
        profile_db.draws = profile.draws
        self.db.commit()
        self.db.refresh(profile_db)
        return self._to_model(profile_db)

    def delete_profile(self, profile_id: str) -> ProfileModel | None:
        """Remove a profile's record."""
        profile_db = self._fetch_profile(profile_id)
        if not profile_db:
            return None
        profile_model = self._to_model(profile_db)
        self.db.delete(profile_db)
        self.db.commit()
        return profile_model

    def _fetch_profile(self, profile_id: str) -> DBProfile | None:
        query = select(DBProfile).where(DBProfile.id == profile_id)
        return self.db.scalar(query)

    def _to_model(self, profile_db: DBProfile) -> ProfileModel:
        """Convert SQLAlchemy model to data transfer model."""
        return ProfileModel(
            profile_id=profile_db.id,
            name=profile_db.name,
            wins=profile_db.wins,
            draws=profile_db.draws,
        )
