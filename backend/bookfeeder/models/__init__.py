"""Pipeline data models."""

from bookfeeder.models.artifact import ArtifactRule, ArtifactRuleType, DEFAULT_ARTIFACT_RULES
from bookfeeder.models.files import CandidateFile, StagedFile
from bookfeeder.models.record import TIMESTAMP_FORMAT, TrackedRecord

__all__ = [
    "ArtifactRule",
    "ArtifactRuleType",
    "DEFAULT_ARTIFACT_RULES",
    "CandidateFile",
    "StagedFile",
    "TIMESTAMP_FORMAT",
    "TrackedRecord",
]
