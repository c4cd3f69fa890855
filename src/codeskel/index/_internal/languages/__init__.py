"""Language profiles and their static registry.

``PROFILES`` maps a profile name to its (stateless, shared) instance. Lookup
by file goes through the extension table derived from it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import PurePosixPath

from codeskel.index._internal.languages.base import BaseProfile, LanguageProfile
from codeskel.index._internal.languages.javascript import JavascriptProfile
from codeskel.index._internal.languages.python import PythonProfile

PROFILES: Mapping[str, LanguageProfile] = {
    "javascript": JavascriptProfile(),
    "python": PythonProfile(),
}


def get_profile(name: str) -> LanguageProfile | None:
    """Return the profile registered under ``name``."""
    return PROFILES.get(name)


def enabled_profiles(names: Iterable[str]) -> dict[str, LanguageProfile]:
    """Subset of the registry for the configured language names (unknown names skipped)."""
    return {name: PROFILES[name] for name in names if name in PROFILES}


def get_profile_for_path(
    path: str, profiles: Mapping[str, LanguageProfile] | None = None
) -> LanguageProfile | None:
    """Pick the profile whose extensions cover ``path`` (case-insensitive)."""
    suffix = PurePosixPath(path).suffix.lower()
    if not suffix:
        return None
    for profile in (profiles if profiles is not None else PROFILES).values():
        if suffix in profile.extensions:
            return profile
    return None


__all__ = [
    "PROFILES",
    "BaseProfile",
    "JavascriptProfile",
    "LanguageProfile",
    "PythonProfile",
    "enabled_profiles",
    "get_profile",
    "get_profile_for_path",
]
