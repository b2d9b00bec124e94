"""
Attribute resolution over the current user's profile.
"""

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    """Profile of the signed-in user."""
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Profile attributes")


ProfileSource = Union[UserProfile, Mapping[str, Any], None]


def profile_from_session(session: Optional[Mapping[str, Any]]) -> Optional[UserProfile]:
    """
    Extract the user profile from a host session payload.

    The session store keeps the signed-in user's record under
    ``entries.dataSource.data``. Any missing level means nobody is signed in.
    """
    if not session:
        return None

    entries = session.get("entries") or {}
    data_source = entries.get("dataSource") or {}
    data = data_source.get("data")

    if not isinstance(data, Mapping):
        return None

    return UserProfile(attributes=dict(data))


class AttributeResolver:
    """
    Typed attribute lookups for one profile.

    Accepts a ``UserProfile``, the host's ``{"attributes": {...}}`` profile
    record, or a flat attribute mapping. ``None`` means nobody is signed in.
    """

    def __init__(self, profile: ProfileSource = None):
        if isinstance(profile, Mapping) and isinstance(profile.get("attributes"), Mapping):
            profile = UserProfile.model_validate(dict(profile))

        if isinstance(profile, UserProfile):
            self._attributes: Optional[Dict[str, Any]] = profile.attributes
        elif profile is not None:
            self._attributes = dict(profile)
        else:
            self._attributes = None

    @property
    def is_authenticated(self) -> bool:
        return self._attributes is not None

    def has(self, key: str) -> bool:
        """Whether the profile carries ``key``, even with a null value."""
        return self._attributes is not None and key in self._attributes

    def get(self, key: str, default: Any = None) -> Any:
        if self._attributes is None:
            return default
        return self._attributes.get(key, default)

    def keys(self):
        return list(self._attributes or ())
