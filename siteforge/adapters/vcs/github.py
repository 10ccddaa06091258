"""
GitHub source-control client — REST v3 over ``JsonApi``.

Writes go through the git data API entirely in memory: read the branch
ref and its commit, upload blobs, build a tree on top of the current
tree, commit it and move the ref. The ref update is never forced, so a
branch that moved underneath us rejects the write instead of losing the
other commit.

Paths a deploy no longer produces are dropped from the new tree with
null-sha entries. Releases get annotated tags (``production-v<n>``).
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from typing import Any

from siteforge.adapters.base import SourceControl, TransportError
from siteforge.adapters.http import JsonApi
from siteforge.core.models.deploy import Commit, CommitResult
from siteforge.core.models.template import GeneratedFile

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
FILE_MODE = "100644"

# Statuses GitHub uses for "no such branch" (409: repository is empty)
_MISSING_BRANCH = (404, 409)


def _commit_from_api(item: dict[str, Any]) -> Commit:
    commit = item.get("commit") or {}
    author = commit.get("author") or {}
    return Commit(
        sha=item.get("sha", ""),
        message=commit.get("message", ""),
        author=author.get("name", ""),
        timestamp=author.get("date", ""),
        url=item.get("html_url", ""),
    )


class GitHubClient(SourceControl):
    """Source control backed by the GitHub REST API."""

    def __init__(self, token: str, base_url: str = GITHUB_API, timeout: float = 30.0):
        self._api = JsonApi(
            base_url,
            token=token,
            timeout=timeout,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    @property
    def name(self) -> str:
        return "github"

    # ── History ──────────────────────────────────────────────────

    def list_commits(self, owner: str, repo: str, branch: str, per_page: int) -> list[Commit]:
        data = self._api.get(
            f"/repos/{owner}/{repo}/commits",
            params={"sha": branch, "per_page": per_page},
            operation="list commits",
        )
        if not isinstance(data, list):
            raise TransportError("unexpected commit list payload", operation="list commits")
        return [_commit_from_api(item) for item in data]

    def get_head(self, owner: str, repo: str, branch: str) -> str | None:
        try:
            ref = self._api.get(f"/repos/{owner}/{repo}/git/ref/heads/{branch}", operation="get ref")
        except TransportError as e:
            if e.status in _MISSING_BRANCH:
                return None
            raise
        return ref["object"]["sha"]

    # ── Trees ────────────────────────────────────────────────────

    def _blobs(self, base: str, commit_sha: str) -> dict[str, str]:
        """``path -> blob sha`` for every file in the commit's tree."""
        commit = self._api.get(f"{base}/commits/{commit_sha}", operation="get commit")
        tree = self._api.get(
            f"{base}/trees/{commit['tree']['sha']}",
            params={"recursive": 1},
            operation="get tree",
        )
        if tree.get("truncated"):
            logger.warning("Tree of %s is truncated; listing is incomplete", commit_sha[:7])
        return {
            entry["path"]: entry["sha"]
            for entry in tree.get("tree", [])
            if entry.get("type") == "blob"
        }

    def list_paths(self, owner: str, repo: str, branch: str) -> set[str]:
        base = f"/repos/{owner}/{repo}/git"
        ref = self._api.get(f"{base}/ref/heads/{branch}", operation="get ref")
        return set(self._blobs(base, ref["object"]["sha"]))

    def read_file(self, owner: str, repo: str, sha: str, path: str) -> str | None:
        base = f"/repos/{owner}/{repo}/git"
        blob_sha = self._blobs(base, sha).get(path)
        if blob_sha is None:
            return None
        blob = self._api.get(f"{base}/blobs/{blob_sha}", operation=f"get blob {path}")
        if blob.get("encoding") == "base64":
            return base64.b64decode(blob["content"]).decode("utf-8")
        return blob.get("content", "")

    # ── Writes ───────────────────────────────────────────────────

    def write_files(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: Sequence[GeneratedFile],
        message: str,
        delete: Sequence[str] = (),
    ) -> CommitResult:
        base = f"/repos/{owner}/{repo}/git"

        ref = self._api.get(f"{base}/ref/heads/{branch}", operation="get ref")
        parent_sha = ref["object"]["sha"]
        parent = self._api.get(f"{base}/commits/{parent_sha}", operation="get commit")
        base_tree = parent["tree"]["sha"]

        entries = []
        for f in files:
            blob = self._api.post(
                f"{base}/blobs",
                {
                    "content": base64.b64encode(f.content.encode("utf-8")).decode("ascii"),
                    "encoding": "base64",
                },
                operation=f"create blob {f.path}",
            )
            entries.append({"path": f.path, "mode": FILE_MODE, "type": "blob", "sha": blob["sha"]})
        logger.debug("Uploaded %d blobs to %s/%s", len(entries), owner, repo)
        written = len(entries)
        # A null sha removes the path from the base tree
        entries.extend({"path": p, "mode": FILE_MODE, "type": "blob", "sha": None} for p in delete)

        tree = self._api.post(
            f"{base}/trees",
            {"base_tree": base_tree, "tree": entries},
            operation="create tree",
        )
        if tree["sha"] == base_tree:
            logger.info("%s/%s@%s already up to date (%s)", owner, repo, branch, parent_sha[:7])
            return CommitResult(
                sha=parent_sha,
                changed=False,
                url=f"https://github.com/{owner}/{repo}/commit/{parent_sha}",
                parent_sha=parent_sha,
                files_written=0,
            )

        commit = self._api.post(
            f"{base}/commits",
            {"message": message, "tree": tree["sha"], "parents": [parent_sha]},
            operation="create commit",
        )
        self._api.patch(
            f"{base}/refs/heads/{branch}",
            {"sha": commit["sha"], "force": False},
            operation="update ref",
        )
        logger.info("Committed %s to %s/%s@%s", commit["sha"][:7], owner, repo, branch)
        return CommitResult(
            sha=commit["sha"],
            changed=True,
            url=commit.get("html_url") or f"https://github.com/{owner}/{repo}/commit/{commit['sha']}",
            parent_sha=parent_sha,
            files_written=written,
            files_deleted=len(delete),
        )

    # ── Tags ─────────────────────────────────────────────────────

    def create_tag(self, owner: str, repo: str, tag: str, sha: str, message: str) -> bool:
        base = f"/repos/{owner}/{repo}/git"
        try:
            self._api.get(f"{base}/ref/tags/{tag}", operation="get tag")
        except TransportError as e:
            if not e.is_not_found:
                raise
        else:
            logger.info("Tag %s already exists on %s/%s", tag, owner, repo)
            return False

        annotated = self._api.post(
            f"{base}/tags",
            {"tag": tag, "message": message, "object": sha, "type": "commit"},
            operation="create tag",
        )
        self._api.post(
            f"{base}/refs",
            {"ref": f"refs/tags/{tag}", "sha": annotated["sha"]},
            operation="create tag ref",
        )
        logger.info("Tagged %s as %s on %s/%s", sha[:7], tag, owner, repo)
        return True
