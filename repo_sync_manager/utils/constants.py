"""Shared constants used across the application."""

import re

# Comment and Issue Marker Constants
# ----------------------------------

MARKER_VERSION = 1
"""Version stamped into every machine-readable marker written by this tool."""

COMMENT_MARKER_PATTERN = re.compile(
    r"<!-- repo-sync:origin format=(?P<format>quoted|inline|minimal) platform=(?P<platform>github|gitlab) id=(?P<id>\d+) v=(?P<version>\d+) -->"
)
"""Pattern to match the origin marker appended to mirrored comments."""

ISSUE_MARKER_PATTERN = re.compile(r"<!-- repo-sync:issue platform=(?P<platform>github|gitlab) number=(?P<number>\d+) v=(?P<version>\d+) -->")
"""Pattern to match the provenance marker appended to mirrored issues."""

LEGACY_COMMENT_SIGNATURES = ("💬 Comment by @", "Synced from GitHub", "Synced from GitLab")
"""Human-readable signatures written by earlier releases that carried no machine marker."""

LEGACY_COMMENT_ID_PATTERN = re.compile(r"issuecomment-(\d+)|note_(\d+)")
"""Pattern to recover the origin comment ID from a legacy source link."""

SYNCED_LABEL = "synced"
"""Label applied to every issue created on the target side."""

# Branch Filter Constants
# -----------------------

DEFAULT_BOT_BRANCH_PATTERNS = [
    "dependabot/*",
    "renovate/*",
    "copilot/*",
    "feature/*",
    "fix/*",
    "hotfix/*",
    "bugfix/*",
    "chore/*",
    "docs/*",
    "refactor/*",
    "test/*",
    "ci/*",
    "build/*",
    "perf/*",
    "style/*",
    "revert-*",
    "temp-*",
    "wip-*",
    "draft-*",
    r"^\d+-",
    r"^[a-zA-Z]+-\d+",
]
"""Default bot branch patterns. Entries starting with ``^`` are regular expressions, the rest are globs."""

PROTECTED_BRANCH_NAMES = frozenset({"main", "master", "develop", "development", "staging", "production", "release"})
"""Branch names never treated as bot branches."""

# Batch Size Constants
# --------------------

BRANCH_BATCH_SIZE = 5
ENTITY_BATCH_SIZE = 5
RELEASE_BATCH_SIZE = 3
ASSET_BATCH_SIZE = 2

# Commit Classification Constants
# -------------------------------

SEMANTIC_COMMIT_PATTERNS = [
    re.compile(r"^(feat|feature)[(:]"),
    re.compile(r"^(fix|bugfix)[(:]"),
    re.compile(r"^(docs?)[(:]"),
    re.compile(r"^(style|format)[(:]"),
    re.compile(r"^(refactor)[(:]"),
    re.compile(r"^(test)[(:]"),
    re.compile(r"^(chore)[(:]"),
    re.compile(r"^(build|ci)[(:]"),
    re.compile(r"^(perf|performance)[(:]"),
    re.compile(r"^(revert)[(:]"),
    re.compile(r"bump.*version"),
    re.compile(r"update.*dependencies?"),
    re.compile(r"merge.*pull.*request"),
    re.compile(r"initial.*commit"),
]
"""Patterns applied to lowercased commit messages to classify the kind of change."""

COMMIT_MESSAGE_STOPWORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "from", "up",
        "about", "into", "through", "during", "before", "after", "above", "below", "between", "among", "is",
        "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did", "will",
        "would", "could", "should", "may", "might", "must", "can",
    }
)  # fmt: skip
"""Words ignored when extracting keywords from commit messages."""

GIT_USER_NAME = "repo-sync-manager"
GIT_USER_EMAIL = "repo-sync-manager@users.noreply.github.com"
