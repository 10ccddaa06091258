"""
Tests for the collaborators — in-memory doubles, the factory, and the
GitHub / Vercel clients against a scripted ``urlopen``.
"""

import base64
import http.client
import io
import json
import urllib.error
import urllib.parse
from unittest.mock import patch

import pytest

from siteforge.adapters.base import TransportError
from siteforge.adapters.factory import build_collaborators
from siteforge.adapters.hosting.vercel import VercelClient, project_name
from siteforge.adapters.http import JsonApi
from siteforge.adapters.mock import InMemoryHosting, InMemorySourceControl
from siteforge.adapters.vcs.github import GitHubClient
from siteforge.core.config.loader import ConfigError, Settings
from siteforge.core.models.deploy import ProjectRef
from siteforge.core.models.template import GeneratedFile

# ── Scripted HTTP ────────────────────────────────────────────────────


class _Response:
    def __init__(self, payload):
        self._raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()

    def read(self):
        return self._raw

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _http_error(url, code, payload):
    body = io.BytesIO(json.dumps(payload).encode())
    return urllib.error.HTTPError(url, code, "error", {}, body)


class FakeRemote:
    """Answers ``(method, path)`` from a routing table and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, req, timeout=None):
        parts = urllib.parse.urlsplit(req.full_url)
        body = json.loads(req.data) if req.data else None
        self.requests.append({
            "method": req.get_method(),
            "path": parts.path,
            "query": dict(urllib.parse.parse_qsl(parts.query)),
            "body": body,
            "auth": req.get_header("Authorization"),
        })
        reply = self.routes[(req.get_method(), parts.path)]
        if callable(reply):
            reply = reply(req.full_url)
        if isinstance(reply, Exception):
            raise reply
        return _Response(reply)

    def sent(self, method, path):
        return [r for r in self.requests if r["method"] == method and r["path"] == path]


def _serve(routes):
    remote = FakeRemote(routes)
    return remote, patch("urllib.request.urlopen", remote)


# ── In-memory source control ─────────────────────────────────────────


class TestInMemorySourceControl:
    def test_create_and_head(self):
        sc = InMemorySourceControl()
        sha = sc.create_branch("o", "r", "main", {"a.txt": "1"})
        assert sc.get_head("o", "r", "main") == sha
        assert sc.get_head("o", "r", "missing") is None
        assert sc.files_at("o", "r", "main") == {"a.txt": "1"}

    def test_deterministic_shas(self):
        a, b = InMemorySourceControl(), InMemorySourceControl()
        assert a.create_branch("o", "r", "main") == b.create_branch("o", "r", "main")

    def test_write_and_noop(self):
        sc = InMemorySourceControl()
        base = sc.create_branch("o", "r", "main")
        files = [GeneratedFile(path="x.ts", content="x")]
        first = sc.write_files("o", "r", "main", files, "m")
        assert first.changed and first.parent_sha == base and first.files_written == 1
        again = sc.write_files("o", "r", "main", files, "m")
        assert not again.changed and again.sha == first.sha
        assert sc.commit_count("o", "r", "main") == 2

    def test_write_overlays_tree(self):
        sc = InMemorySourceControl()
        sc.create_branch("o", "r", "main", {"keep.txt": "k"})
        sc.write_files("o", "r", "main", [GeneratedFile(path="new.txt", content="n")], "m")
        assert sc.files_at("o", "r", "main") == {"keep.txt": "k", "new.txt": "n"}

    def test_list_commits_newest_first(self):
        sc = InMemorySourceControl()
        sc.create_branch("o", "r", "main")
        sc.add_commits("o", "r", "main", ["second", "third"])
        commits = sc.list_commits("o", "r", "main", 2)
        assert [c.message for c in commits] == ["third", "second"]
        assert commits[0].timestamp > commits[1].timestamp

    def test_missing_branch(self):
        sc = InMemorySourceControl()
        with pytest.raises(TransportError) as exc:
            sc.list_commits("o", "r", "main", 10)
        assert exc.value.is_not_found
        with pytest.raises(TransportError):
            sc.write_files("o", "r", "main", [], "m")

    def test_failure_injection(self):
        sc = InMemorySourceControl()
        sc.create_branch("o", "r", "main")
        sc.set_failure("get_head", "rate limited", status=429, times=1)
        with pytest.raises(TransportError, match="rate limited") as exc:
            sc.get_head("o", "r", "main")
        assert exc.value.status == 429
        assert sc.get_head("o", "r", "main") is not None
        assert sc.calls("get_head") == 2
        assert sc.call_log == [("get_head", "main"), ("get_head", "main")]

    def test_write_deletes_paths(self):
        sc = InMemorySourceControl()
        sc.create_branch("o", "r", "main", {"keep.txt": "k", "old.txt": "o"})
        result = sc.write_files("o", "r", "main", [], "m", delete=["old.txt", "never-there.txt"])
        assert result.changed
        assert result.files_deleted == 2
        assert sc.files_at("o", "r", "main") == {"keep.txt": "k"}
        assert sc.list_paths("o", "r", "main") == {"keep.txt"}

    def test_read_file_at_commit(self):
        sc = InMemorySourceControl()
        first = sc.create_branch("o", "r", "main", {"a.txt": "one"})
        sc.write_files("o", "r", "main", [GeneratedFile(path="a.txt", content="two")], "m")
        assert sc.read_file("o", "r", first, "a.txt") == "one"
        assert sc.read_file("o", "r", first, "b.txt") is None
        with pytest.raises(TransportError) as exc:
            sc.read_file("o", "r", "f" * 40, "a.txt")
        assert exc.value.is_not_found

    def test_tags_are_created_once(self):
        sc = InMemorySourceControl()
        sha = sc.create_branch("o", "r", "main")
        assert sc.create_tag("o", "r", "production-v1", sha, "Production release v1")
        assert not sc.create_tag("o", "r", "production-v1", "other", "again")
        assert sc.tags[("o", "r", "production-v1")] == (sha, "Production release v1")


class TestInMemoryHosting:
    def test_deployments_recorded(self):
        hosting = InMemoryHosting()
        ref = ProjectRef(project="acme", owner="o", repo="r")
        first = hosting.create_or_update_deployment(ref, "main")
        second = hosting.create_or_update_deployment(ref, "development")
        assert (first.deployment_id, second.deployment_id) == ("dpl_mock_1", "dpl_mock_2")
        assert first.url == "https://acme-1.mock.invalid"
        assert [b for _, b in hosting.deployments] == ["main", "development"]

    def test_provision(self):
        hosting = InMemoryHosting()
        assert hosting.provision_project("o/My-Site").url == "https://my-site.vercel.app"
        project = hosting.provision_project("o/r", "acme.example")
        assert project.project_id == "prj_mock_2"
        assert project.domain == "acme.example"

    def test_failure(self):
        hosting = InMemoryHosting()
        hosting.set_failure("provision_project", status=401)
        with pytest.raises(TransportError) as exc:
            hosting.provision_project("o/r")
        assert exc.value.is_auth_failure
        assert hosting.projects == []


# ── Factory ──────────────────────────────────────────────────────────


class TestFactory:
    def test_mock_mode_seeds_branches(self, settings):
        sc, hosting = build_collaborators(settings, mock_mode=True)
        assert isinstance(sc, InMemorySourceControl)
        assert isinstance(hosting, InMemoryHosting)
        assert sc.get_head("acme", "site", "main") is not None
        assert sc.get_head("acme", "site", "development") is not None

    def test_mock_mode_without_repository(self):
        sc, _ = build_collaborators(Settings(), mock_mode=True)
        assert sc.get_head("", "", "main") is None

    def test_missing_tokens(self, settings):
        with pytest.raises(ConfigError, match="GITHUB_TOKEN, VERCEL_TOKEN"):
            build_collaborators(settings, environ={})
        with pytest.raises(ConfigError, match="VERCEL_TOKEN"):
            build_collaborators(settings, environ={"GITHUB_TOKEN": "gh"})

    def test_real_clients(self, settings):
        sc, hosting = build_collaborators(
            settings, environ={"GITHUB_TOKEN": "gh", "VERCEL_TOKEN": "vc", "VERCEL_TEAM_ID": "team_1"},
        )
        assert sc.name == "github"
        assert hosting.name == "vercel"


# ── JsonApi ──────────────────────────────────────────────────────────


class TestJsonApi:
    def test_auth_and_params(self):
        remote, server = _serve({("GET", "/things"): {"ok": True}})
        with server:
            data = JsonApi("https://api.test/", token="t0k").get("/things", params={"a": 1, "b": None})
        assert data == {"ok": True}
        assert remote.requests[0]["auth"] == "Bearer t0k"
        assert remote.requests[0]["query"] == {"a": "1"}

    def test_http_error_message(self):
        url = "https://api.test/things"
        _, server = _serve({("GET", "/things"): _http_error(url, 401, {"message": "Bad credentials"})})
        with server, pytest.raises(TransportError) as exc:
            JsonApi("https://api.test").get("/things", operation="list things")
        assert exc.value.status == 401
        assert exc.value.message == "Bad credentials"
        assert str(exc.value) == "list things: Bad credentials"

    def test_nested_error_message(self):
        url = "https://api.test/things"
        payload = {"error": {"code": "forbidden", "message": "Not authorized"}}
        _, server = _serve({("POST", "/things"): _http_error(url, 403, payload)})
        with server, pytest.raises(TransportError, match="Not authorized"):
            JsonApi("https://api.test").post("/things", {})

    def test_network_error(self):
        _, server = _serve({("GET", "/x"): urllib.error.URLError("connection refused")})
        with server, pytest.raises(TransportError) as exc:
            JsonApi("https://api.test").get("/x")
        assert exc.value.status is None

    @pytest.mark.parametrize("error", [
        http.client.RemoteDisconnected("Remote end closed connection without response"),
        http.client.IncompleteRead(b"{\"sha\"", 120),
        ConnectionResetError(104, "Connection reset by peer"),
    ])
    def test_dropped_connection(self, error):
        _, server = _serve({("GET", "/x"): error})
        with server, pytest.raises(TransportError) as exc:
            JsonApi("https://api.test").get("/x", operation="fetch x")
        assert exc.value.status is None
        assert exc.value.operation == "fetch x"
        assert exc.value.message

    def test_empty_and_invalid_bodies(self):
        _, server = _serve({("GET", "/empty"): b"", ("GET", "/html"): b"<html>"})
        api = JsonApi("https://api.test")
        with server:
            assert api.get("/empty") is None
            with pytest.raises(TransportError, match="invalid JSON"):
                api.get("/html")


# ── GitHub ───────────────────────────────────────────────────────────

_GIT = "/repos/acme/site/git"


def _write_routes(tree_sha):
    return {
        ("GET", f"{_GIT}/ref/heads/main"): {"object": {"sha": "p1"}},
        ("GET", f"{_GIT}/commits/p1"): {"tree": {"sha": "t0"}},
        ("POST", f"{_GIT}/blobs"): {"sha": "b1"},
        ("POST", f"{_GIT}/trees"): {"sha": tree_sha},
        ("POST", f"{_GIT}/commits"): {"sha": "c1", "html_url": "https://github.com/acme/site/commit/c1"},
        ("PATCH", f"{_GIT}/refs/heads/main"): {},
    }


class TestGitHubClient:
    def test_list_commits(self):
        remote, server = _serve({("GET", "/repos/acme/site/commits"): [
            {"sha": "c2", "html_url": "u2", "commit": {"message": "two", "author": {"name": "A", "date": "2024-02-02"}}},
            {"sha": "c1", "commit": {"message": "one"}},
        ]})
        with server:
            commits = GitHubClient("t").list_commits("acme", "site", "main", 5)
        assert [c.sha for c in commits] == ["c2", "c1"]
        assert commits[0].author == "A"
        assert remote.requests[0]["query"] == {"sha": "main", "per_page": "5"}

    def test_get_head(self):
        url = "https://api.github.com/repos/acme/site/git/ref/heads/gone"
        _, server = _serve({
            ("GET", f"{_GIT}/ref/heads/main"): {"object": {"sha": "abc"}},
            ("GET", f"{_GIT}/ref/heads/gone"): _http_error(url, 404, {"message": "Not Found"}),
        })
        client = GitHubClient("t")
        with server:
            assert client.get_head("acme", "site", "main") == "abc"
            assert client.get_head("acme", "site", "gone") is None

    def test_get_head_auth_failure_raises(self):
        url = "https://api.github.com/repos/acme/site/git/ref/heads/main"
        _, server = _serve({("GET", f"{_GIT}/ref/heads/main"): _http_error(url, 401, {"message": "Bad credentials"})})
        with server, pytest.raises(TransportError) as exc:
            GitHubClient("t").get_head("acme", "site", "main")
        assert exc.value.is_auth_failure

    def test_write_files_commits(self):
        remote, server = _serve(_write_routes("t1"))
        files = [GeneratedFile(path="src/app/page.tsx", content="page")]
        with server:
            result = GitHubClient("t").write_files("acme", "site", "main", files, "msg")
        assert result.changed
        assert (result.sha, result.parent_sha, result.files_written) == ("c1", "p1", 1)

        blob = remote.sent("POST", f"{_GIT}/blobs")[0]["body"]
        assert base64.b64decode(blob["content"]) == b"page"
        tree = remote.sent("POST", f"{_GIT}/trees")[0]["body"]
        assert tree["base_tree"] == "t0"
        assert tree["tree"][0]["path"] == "src/app/page.tsx"
        assert remote.sent("POST", f"{_GIT}/commits")[0]["body"]["parents"] == ["p1"]
        assert remote.sent("PATCH", f"{_GIT}/refs/heads/main")[0]["body"] == {"sha": "c1", "force": False}

    def test_write_files_unchanged_tree(self):
        remote, server = _serve(_write_routes("t0"))
        with server:
            result = GitHubClient("t").write_files(
                "acme", "site", "main", [GeneratedFile(path="a", content="a")], "msg",
            )
        assert not result.changed
        assert result.sha == "p1"
        assert remote.sent("POST", f"{_GIT}/commits") == []
        assert remote.sent("PATCH", f"{_GIT}/refs/heads/main") == []

    def test_write_files_deletes_with_null_sha(self):
        remote, server = _serve(_write_routes("t1"))
        files = [GeneratedFile(path="src/app/page.tsx", content="page")]
        with server:
            result = GitHubClient("t").write_files(
                "acme", "site", "main", files, "msg", delete=["src/app/old/page.tsx"],
            )
        assert (result.files_written, result.files_deleted) == (1, 1)
        entries = remote.sent("POST", f"{_GIT}/trees")[0]["body"]["tree"]
        assert entries[1] == {"path": "src/app/old/page.tsx", "mode": "100644", "type": "blob", "sha": None}
        assert len(remote.sent("POST", f"{_GIT}/blobs")) == 1

    def test_list_paths(self):
        remote, server = _serve({
            ("GET", f"{_GIT}/ref/heads/main"): {"object": {"sha": "p1"}},
            ("GET", f"{_GIT}/commits/p1"): {"tree": {"sha": "t0"}},
            ("GET", f"{_GIT}/trees/t0"): {"tree": [
                {"path": "src", "type": "tree", "sha": "d1"},
                {"path": "src/app/page.tsx", "type": "blob", "sha": "b1"},
            ]},
        })
        with server:
            paths = GitHubClient("t").list_paths("acme", "site", "main")
        assert paths == {"src/app/page.tsx"}
        assert remote.sent("GET", f"{_GIT}/trees/t0")[0]["query"] == {"recursive": "1"}

    def test_read_file(self):
        encoded = base64.b64encode(b'{"pages": {}}').decode()
        _, server = _serve({
            ("GET", f"{_GIT}/commits/c1"): {"tree": {"sha": "t1"}},
            ("GET", f"{_GIT}/trees/t1"): {"tree": [
                {"path": "src/data/websiteData.json", "type": "blob", "sha": "b9"},
            ]},
            ("GET", f"{_GIT}/blobs/b9"): {"content": encoded[:8] + "\n" + encoded[8:], "encoding": "base64"},
        })
        client = GitHubClient("t")
        with server:
            assert client.read_file("acme", "site", "c1", "src/data/websiteData.json") == '{"pages": {}}'
            assert client.read_file("acme", "site", "c1", "src/missing.ts") is None

    def test_create_tag(self):
        url = f"https://api.github.com{_GIT}/ref/tags/production-v4"
        remote, server = _serve({
            ("GET", f"{_GIT}/ref/tags/production-v4"): _http_error(url, 404, {"message": "Not Found"}),
            ("POST", f"{_GIT}/tags"): {"sha": "tag1"},
            ("POST", f"{_GIT}/refs"): {},
        })
        with server:
            assert GitHubClient("t").create_tag("acme", "site", "production-v4", "c1", "Production release v4")
        assert remote.sent("POST", f"{_GIT}/tags")[0]["body"] == {
            "tag": "production-v4", "message": "Production release v4", "object": "c1", "type": "commit",
        }
        assert remote.sent("POST", f"{_GIT}/refs")[0]["body"] == {"ref": "refs/tags/production-v4", "sha": "tag1"}

    def test_existing_tag_untouched(self):
        remote, server = _serve({("GET", f"{_GIT}/ref/tags/production-v4"): {"object": {"sha": "tag1"}}})
        with server:
            assert not GitHubClient("t").create_tag("acme", "site", "production-v4", "c1", "m")
        assert remote.sent("POST", f"{_GIT}/tags") == []


# ── Vercel ───────────────────────────────────────────────────────────


class TestVercelClient:
    ref = ProjectRef(project="acme-site", owner="acme", repo="site")

    def test_production_deployment(self):
        remote, server = _serve({("POST", "/v13/deployments"): {"id": "dpl_1", "url": "acme-site.vercel.app"}})
        with server:
            deployment = VercelClient("t", team_id="team_1").create_or_update_deployment(self.ref, "main")
        assert deployment.deployment_id == "dpl_1"
        assert deployment.url == "https://acme-site.vercel.app"
        sent = remote.requests[0]
        assert sent["body"]["target"] == "production"
        assert sent["body"]["gitSource"] == {"type": "github", "org": "acme", "repo": "site", "ref": "main"}
        assert sent["query"] == {"teamId": "team_1"}

    def test_preview_deployment(self):
        remote, server = _serve({("POST", "/v13/deployments"): {"uid": "dpl_2"}})
        with server:
            deployment = VercelClient("t").create_or_update_deployment(self.ref, "development")
        assert deployment.deployment_id == "dpl_2"
        assert deployment.url == ""
        assert "target" not in remote.requests[0]["body"]

    def test_missing_deployment_id(self):
        _, server = _serve({("POST", "/v13/deployments"): {}})
        with server, pytest.raises(TransportError, match="no deployment id"):
            VercelClient("t").create_or_update_deployment(self.ref, "main")

    def test_provision_with_domain(self):
        remote, server = _serve({
            ("POST", "/v10/projects"): {"id": "prj_1", "name": "site"},
            ("POST", "/v10/projects/prj_1/domains"): {"name": "acme.example"},
        })
        with server:
            project = VercelClient("t").provision_project("acme/site", "acme.example")
        assert project.project_id == "prj_1"
        assert project.url == "https://acme.example"
        assert remote.requests[0]["body"]["gitRepository"] == {"type": "github", "repo": "acme/site"}

    def test_provision_default_url(self):
        _, server = _serve({("POST", "/v10/projects"): {"id": "prj_1", "name": "site"}})
        with server:
            project = VercelClient("t").provision_project("acme/site")
        assert project.url == "https://site.vercel.app"
        assert project.domain is None

    @pytest.mark.parametrize("owner_repo, name", [
        ("acme/site", "site"),
        ("acme/My Site!", "my-site"),
        ("acme/---", "site"),
    ])
    def test_project_name(self, owner_repo, name):
        assert project_name(owner_repo) == name
