"""
Production filter — decide, file by file, what ships to production.

An ordered table of rules is evaluated first-match-wins against the
normalized path (and, for the content sniff, the file content). Files
only the editor needs are excluded; the rest ships.

    editor-api      editor API routes (assistant, deploy, versions, …)
    editor-ui       editor pages, components, stores and *Edit variants
    deploy-infra    deploy/hosting/database libraries, VCS dirs, env files
    non-project     docs, scripts, tests, build output, unknown roots
    editor-import   sources that import an editor-only module
    default         everything else is included

The filter is pure: same input, same decision, every time. A rule that
raises while evaluating excludes the file (fail closed).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from siteforge.core.models.deploy import FilterDecision

logger = logging.getLogger(__name__)

Predicate = Callable[[str, str | None], bool]


class FilterConfigError(Exception):
    """Raised for a malformed rule table."""


class PathLike(Protocol):
    path: str


@dataclass(frozen=True)
class FilterRule:
    """One row of the rule table."""

    name: str
    predicate: Predicate
    include: bool
    reason: str


@dataclass
class FilterBatch:
    """Partition of a file batch into included and excluded files."""

    included: list[Any] = field(default_factory=list)
    excluded: list[Any] = field(default_factory=list)
    # (file, decision) per input file, in input order; paths may repeat
    decisions: list[tuple[Any, FilterDecision]] = field(default_factory=list)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "total": len(self.included) + len(self.excluded),
            "included": len(self.included),
            "excluded": len(self.excluded),
        }

    def excluded_reasons(self) -> list[dict[str, str]]:
        return [
            {"path": f.path, "reason": decision.reason}
            for f, decision in self.decisions
            if not decision.include
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": self.stats,
            "included": [f.path for f in self.included],
            "excluded": self.excluded_reasons(),
        }


# ── Path normalization ──────────────────────────────────────────


_SLASHES_RE = re.compile(r"/{2,}")


def normalize_path(path: str, root_prefix: str = "") -> str:
    """Forward slashes, no leading ``./`` or ``/``, no doubled slashes.

    ``root_prefix`` (e.g. ``frontend/``) is stripped when the site project
    lives in a subdirectory of the repository.
    """
    p = _SLASHES_RE.sub("/", path.strip().replace("\\", "/"))
    while p.startswith("./"):
        p = p[2:]
    p = p.lstrip("/")
    prefix = root_prefix.strip("/")
    if prefix and p.startswith(prefix + "/"):
        p = p[len(prefix) + 1:]
    return p


# ── Rule predicates ─────────────────────────────────────────────


EDITOR_API_NAMESPACES = (
    "assistant", "chat", "claude-code", "knowledge", "production", "deploy",
    "deployments", "vercel", "versions", "files", "images", "usage", "projects",
)

_EDITOR_API_RE = re.compile(
    r"^src/app/api/(?:" + "|".join(re.escape(n) for n in EDITOR_API_NAMESPACES) + r")(?:/|$)"
)

_EDITOR_UI_RES = (
    re.compile(r"^src/app/(?:editor|dashboard|info|usage)(?:/|$)"),
    re.compile(r"^src/components/(?:editor|dashboard|deployment|chatbot)/"),
    re.compile(r"^src/(?:stores|context)/"),
    re.compile(r"^src/lib/(?:usage|prompts|debug|validation)/"),
    re.compile(r"^src/hooks/useWebsiteSave\.tsx?$"),
    re.compile(r"^src/data/helperBotTasks\.ts$"),
    re.compile(
        r"^src/types/(?:website|websiteDataTypes|templateTypes|llmOutputs"
        r"|user|helperBot|usage|editorial)\.ts$"
    ),
    re.compile(r"(?:^|/)(?:admin|analytics|tracking|registry)/"),
    re.compile(r"(?:Edit|\.edit)\.tsx$"),
)

_DEPLOY_INFRA_RES = (
    re.compile(r"^src/lib/(?:deploy|vercel|git|github|db|qdrant)/"),
    re.compile(r"^src/lib/(?:config|componentRegistry)\.ts$"),
    re.compile(r"(?:^|/)(?:deploy|deployment|production|vercel|models|db)/"),
    re.compile(r"(?:^|/)\.(?:git|vercel)(?:/|$)"),
    re.compile(r"(?:^|/)\.env[^/]*$"),
)

_NON_PROJECT_RES = (
    re.compile(r"(?:^|/)(?:node_modules|\.next)/"),
    re.compile(r"^(?:docs|scripts)/"),
    re.compile(r"\.(?:md|sh)$"),
    re.compile(r"\.(?:test|spec)\.(?:ts|tsx|js|jsx)$"),
    re.compile(r"(?:^|/)__tests__/"),
    re.compile(r"(?:^|/)_*test-[^/]*\.ts$"),
)

_PROJECT_ROOTS = ("src/", "public/")

_ROOT_MANIFEST_RE = re.compile(
    r"^(?:package\.json|package-lock\.json|tsconfig\.json|\.nvmrc|vercel\.json"
    r"|next-env\.d\.ts|next\.config\.(?:ts|js|mjs)|tailwind\.config\.(?:ts|js)"
    r"|postcss\.config\.(?:js|mjs)|eslint\.config\.(?:js|mjs))$"
)

_SOURCE_EXT_RE = re.compile(r"\.(?:ts|tsx|js|jsx)$")

_EDITOR_MODULES = (
    r"components/(?:editor|dashboard|deployment|chatbot)",
    r"lib/(?:deploy|vercel|git|github|db|qdrant|usage|prompts|debug|validation)",
    r"lib/(?:config|componentRegistry)",
    r"hooks/useWebsiteSave",
    r"data/helperBotTasks",
    r"stores",
    r"context",
    r"types/(?:registry|website|templateTypes|llmOutputs|helperBot|editorial)",
)

_EDITOR_IMPORT_RE = re.compile(
    r"""(?:\bfrom\s+|\bimport\s*\(\s*|\brequire\s*\(\s*|^\s*import\s+)"""
    r"""['"](?:@/(?:""" + "|".join(_EDITOR_MODULES) + r""")(?:/[^'"]*)?"""
    r"""|[^'"]*(?:Edit|\.edit))['"]""",
    re.MULTILINE,
)


def _any(patterns: Sequence[re.Pattern[str]]) -> Predicate:
    def predicate(path: str, _content: str | None) -> bool:
        return any(p.search(path) for p in patterns)

    return predicate


def _is_editor_api(path: str, _content: str | None) -> bool:
    return bool(_EDITOR_API_RE.match(path))


def _is_non_project(path: str, _content: str | None) -> bool:
    if any(p.search(path) for p in _NON_PROJECT_RES):
        return True
    return not (path.startswith(_PROJECT_ROOTS) or _ROOT_MANIFEST_RE.match(path))


def _imports_editor_module(path: str, content: str | None) -> bool:
    if content is None or not _SOURCE_EXT_RE.search(path):
        return False
    return bool(_EDITOR_IMPORT_RE.search(content))


def always(_path: str, _content: str | None) -> bool:
    return True


DEFAULT_RULES: tuple[FilterRule, ...] = (
    FilterRule("editor-api", _is_editor_api, False, "editor-only API route"),
    FilterRule("editor-ui", _any(_EDITOR_UI_RES), False, "editor-only UI, state or variant"),
    FilterRule("deploy-infra", _any(_DEPLOY_INFRA_RES), False, "deployment or infrastructure tooling"),
    FilterRule("non-project", _is_non_project, False, "not part of the site project"),
    FilterRule("editor-import", _imports_editor_module, False, "imports an editor-only module"),
    FilterRule("default", always, True, "site source"),
)


# ── Filter ──────────────────────────────────────────────────────


class ProductionFilter:
    """Evaluates a validated rule table.

    Raises:
        FilterConfigError: If the table is malformed (see ``_validate_rules``).
    """

    def __init__(self, rules: Sequence[FilterRule] = DEFAULT_RULES, root_prefix: str = ""):
        _validate_rules(rules)
        self._rules = tuple(rules)
        self._root_prefix = root_prefix

    @property
    def rules(self) -> tuple[FilterRule, ...]:
        return self._rules

    def classify(self, path: str, content: str | None = None) -> FilterDecision:
        """Decision for one file."""
        normalized = normalize_path(path, self._root_prefix)
        for rule in self._rules:
            try:
                matched = rule.predicate(normalized, content)
            except Exception as e:
                logger.error("Filter rule %r failed on %s: %s", rule.name, normalized, e)
                return FilterDecision(
                    include=False,
                    reason=f"filter rule '{rule.name}' failed: {e}",
                    rule=rule.name,
                )
            if matched:
                return FilterDecision(include=rule.include, reason=rule.reason, rule=rule.name)
        # Unreachable with a validated table
        return FilterDecision(include=False, reason="no rule matched", rule="")

    def classify_batch(self, files: Iterable[PathLike]) -> FilterBatch:
        """Partition files, preserving input order within each bucket.

        Files carrying a ``content`` attribute get the content sniff.
        """
        batch = FilterBatch()
        for f in files:
            decision = self.classify(f.path, getattr(f, "content", None))
            batch.decisions.append((f, decision))
            (batch.included if decision.include else batch.excluded).append(f)
        return batch


def _validate_rules(rules: Sequence[FilterRule]) -> None:
    if not rules:
        raise FilterConfigError("Rule table is empty")
    names = [r.name for r in rules]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise FilterConfigError(f"Duplicate rule names: {', '.join(dupes)}")
    for rule in rules:
        if not callable(rule.predicate):
            raise FilterConfigError(f"Rule {rule.name!r} has no callable predicate")
    last = rules[-1]
    if last.name != "default" or last.predicate is not always:
        raise FilterConfigError("Rule table must end with the unconditional 'default' rule")


def summarize(stats: dict[str, int]) -> str:
    """One-line summary of a batch, logged at INFO."""
    total = stats.get("total", 0)
    share = (stats.get("included", 0) / total * 100) if total else 0.0
    line = (
        f"Production filter: {total} files, {stats.get('included', 0)} included, "
        f"{stats.get('excluded', 0)} excluded ({share:.1f}% shipped)"
    )
    logger.info(line)
    return line


_default_filter = ProductionFilter()


def classify(path: str, content: str | None = None) -> FilterDecision:
    """Classify with the default rule table."""
    return _default_filter.classify(path, content)


def classify_batch(files: Iterable[PathLike]) -> FilterBatch:
    """Partition with the default rule table."""
    return _default_filter.classify_batch(files)
