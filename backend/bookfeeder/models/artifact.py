"""Rules for catalog-internal artifacts that are never crawl candidates."""

from dataclasses import dataclass
from enum import Enum


class ArtifactRuleType(str, Enum):
    """Types of artifact rules."""
    FOLDER_NAME = "folder_name"      # Match folder name anywhere in path
    FILENAME = "filename"            # Match filename pattern (glob)


@dataclass(frozen=True)
class ArtifactRule:
    """A single artifact pattern."""

    rule_type: ArtifactRuleType
    pattern: str
    description: str = ""


DEFAULT_ARTIFACT_RULES = [
    # Calibre library internals
    ArtifactRule(ArtifactRuleType.FILENAME, "metadata.db", "Calibre library database"),
    ArtifactRule(ArtifactRuleType.FILENAME, "metadata_db_prefs_backup.json", "Calibre prefs backup"),
    ArtifactRule(ArtifactRuleType.FILENAME, "cover.jpg", "Calibre cover image"),
    ArtifactRule(ArtifactRuleType.FILENAME, "*.opf", "OPF sidecar metadata"),
    ArtifactRule(ArtifactRuleType.FOLDER_NAME, ".calibre", "Calibre internal folder"),
    ArtifactRule(ArtifactRuleType.FOLDER_NAME, ".caltrash", "Calibre trash"),
    ArtifactRule(ArtifactRuleType.FOLDER_NAME, ".calnotes", "Calibre notes"),

    # NAS / OS noise
    ArtifactRule(ArtifactRuleType.FOLDER_NAME, "@eaDir", "Synology thumbnails"),
    ArtifactRule(ArtifactRuleType.FOLDER_NAME, "#recycle", "NAS recycle bins"),
    ArtifactRule(ArtifactRuleType.FOLDER_NAME, ".Trash*", "Trash folders"),
    ArtifactRule(ArtifactRuleType.FILENAME, ".DS_Store", "macOS folder metadata"),
    ArtifactRule(ArtifactRuleType.FILENAME, "Thumbs.db", "Windows thumbnails"),
    ArtifactRule(ArtifactRuleType.FILENAME, "._*", "macOS metadata files"),
]
