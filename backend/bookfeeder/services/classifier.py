"""Classifier - supported book formats and catalog-artifact matching."""

import fnmatch
import logging
from pathlib import Path
from typing import Iterable

from bookfeeder.errors import ClassificationRejected
from bookfeeder.models import ArtifactRule, ArtifactRuleType, DEFAULT_ARTIFACT_RULES

logger = logging.getLogger(__name__)


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot ('' if none)."""
    return Path(filename).suffix.lower().lstrip(".")


class ArtifactMatcher:
    """Matches files and folders against artifact rules."""

    def __init__(self, rules: Iterable[ArtifactRule] = DEFAULT_ARTIFACT_RULES):
        self.rules = list(rules)
        self._folder_patterns = [
            r.pattern for r in self.rules if r.rule_type == ArtifactRuleType.FOLDER_NAME
        ]
        self._file_patterns = [
            r.pattern for r in self.rules if r.rule_type == ArtifactRuleType.FILENAME
        ]

    def is_artifact_folder(self, name: str) -> bool:
        """Check a single directory name."""
        return any(fnmatch.fnmatchcase(name, p) for p in self._folder_patterns)

    def matching_rule(self, path: Path, root: Path | None = None) -> ArtifactRule | None:
        """Return the first rule matching the file, or None.

        With root given, folder rules only see the directories below root.
        """
        folders = path.parent.parts
        if root is not None:
            try:
                folders = path.parent.relative_to(root).parts
            except ValueError:
                pass
        for rule in self.rules:
            if rule.rule_type == ArtifactRuleType.FILENAME:
                if fnmatch.fnmatchcase(path.name, rule.pattern):
                    return rule
            elif rule.rule_type == ArtifactRuleType.FOLDER_NAME:
                if any(fnmatch.fnmatchcase(part, rule.pattern) for part in folders):
                    return rule
        return None

    def is_artifact(self, path: Path, root: Path | None = None) -> bool:
        return self.matching_rule(path, root) is not None


class Classifier:
    """Pure predicate over file names: is this a supported book format."""

    def __init__(
        self,
        formats: Iterable[str],
        artifacts: ArtifactMatcher | None = None,
    ):
        self.formats = frozenset(f.lower().lstrip(".") for f in formats)
        self.artifacts = artifacts or ArtifactMatcher()

    def is_supported(self, filename: str) -> bool:
        """Extension match against the allow-list, case-insensitive."""
        ext = file_extension(filename)
        return bool(ext) and ext in self.formats

    def is_artifact(self, path: Path, root: Path | None = None) -> bool:
        return self.artifacts.is_artifact(path, root)

    def check(self, path: Path) -> str:
        """Return the extension of a supported file.

        Raises:
            ClassificationRejected: the extension is not in the allow-list.
        """
        ext = file_extension(path.name)
        if not ext or ext not in self.formats:
            raise ClassificationRejected(path, ext)
        return ext
