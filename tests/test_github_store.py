"""Unit tests for the GitHub Contents API document store."""

import base64
from unittest.mock import MagicMock

import pytest
import requests

from app.config import GithubConfig
from app.services.github_store import (
    DocumentNotFound,
    GitHubStore,
    MissingGithubConfig,
    StoreUnavailable,
    StoreWriteConflict,
    build_store,
    get_store,
)
from fake_github import make_response


def test_read_json_missing_file_returns_default(store):
    default = {"allowed": ["admin"]}

    doc = store.read_json("data/demo/users.json", default)

    assert doc.data == default
    assert doc.data is not default
    assert doc.sha is None


def test_get_missing_file_raises(store):
    with pytest.raises(DocumentNotFound):
        store.get("data/demo/users.json")


def test_read_json_parses_content_and_sha(store, github):
    sha = github.seed("data/demo/pending.json", {"bob": "hash"})

    doc = store.read_json("data/demo/pending.json", {})

    assert doc.data == {"bob": "hash"}
    assert doc.sha == sha


def test_read_json_strips_byte_order_mark(store, github):
    github.seed("data/demo/pending.json", '\ufeff{"bob": "hash"}')

    assert store.read_json("data/demo/pending.json", {}).data == {"bob": "hash"}


@pytest.mark.parametrize("content", ["{not json", "", "[1, 2]"])
def test_read_json_unusable_content_keeps_sha(store, github, content):
    sha = github.seed("data/demo/users.json", content)

    doc = store.read_json("data/demo/users.json", {})

    assert doc.data == {}
    assert doc.sha == sha


def test_corrupt_file_can_be_overwritten(store, github):
    github.seed("data/demo/users.json", "{broken")

    doc = store.read_json("data/demo/users.json", {})
    store.put("data/demo/users.json", {"allowed": []}, "fix", expected_sha=doc.sha)

    assert github.read("data/demo/users.json") == {"allowed": []}


def test_put_discovers_revision_before_writing(store, github):
    github.seed("public/menus/demo.json", [])

    store.put("public/menus/demo.json", [{"id": "1"}], "update menu")

    assert github.calls == [
        ("GET", "public/menus/demo.json"),
        ("PUT", "public/menus/demo.json"),
    ]
    assert github.read("public/menus/demo.json") == [{"id": "1"}]


def test_put_creates_file_and_returns_sha(store, github):
    sha = store.put("data/demo/pending.json", {}, "init")

    assert sha == github.sha("data/demo/pending.json")


def test_put_with_stale_sha_conflicts(store, github):
    github.seed("data/demo/users.json", {"allowed": ["admin"]})
    stale = store.read_json("data/demo/users.json", {}).sha
    github.seed("data/demo/users.json", {"allowed": ["admin", "eve"]})

    with pytest.raises(StoreWriteConflict):
        store.put("data/demo/users.json", {}, "overwrite", expected_sha=stale)

    assert github.read("data/demo/users.json") == {"allowed": ["admin", "eve"]}


def test_create_without_discovery_conflicts_with_existing_file(store, github):
    github.seed("data/demo/pending.json", {"bob": "hash"})

    with pytest.raises(StoreWriteConflict):
        store.put("data/demo/pending.json", {}, "create", discover=False)


def test_put_server_error_is_unavailable(store, github):
    github.fail_puts.add("data/demo/pending.json")

    with pytest.raises(StoreUnavailable) as excinfo:
        store.put("data/demo/pending.json", {}, "init")

    assert excinfo.value.status_code == 500


def test_update_json_retries_after_conflict(store, github):
    github.seed("data/demo/pending.json", {"bob": "hash-b"})
    github.before_put = lambda path: github.seed(
        path, {"bob": "hash-b", "carol": "hash-c"}
    )

    def add_dave(data):
        data["dave"] = "hash-d"
        return True

    _, written = store.update_json("data/demo/pending.json", {}, add_dave, "add")

    assert written is True
    assert github.read("data/demo/pending.json") == {
        "bob": "hash-b",
        "carol": "hash-c",
        "dave": "hash-d",
    }


def test_update_json_gives_up_after_retries(github):
    config = GithubConfig(token="t", owner="o", repo="r")
    store = GitHubStore(config, session=github, write_retries=0)
    github.seed("data/demo/pending.json", {})
    github.before_put = lambda path: github.seed(path, {"x": "y"})

    with pytest.raises(StoreWriteConflict):
        store.update_json(
            "data/demo/pending.json", {}, lambda data: data.update(a="b") or True, "m"
        )


def test_update_json_skips_unchanged_document(store, github):
    github.seed("data/demo/pending.json", {"bob": "hash"})

    doc, written = store.update_json(
        "data/demo/pending.json", {}, lambda data: False, "noop"
    )

    assert written is False
    assert doc.data == {"bob": "hash"}
    assert ("PUT", "data/demo/pending.json") not in github.calls


def test_timeout_is_unavailable():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.side_effect = requests.Timeout("slow")
    store = GitHubStore(GithubConfig(token="t", owner="o", repo="r"), session=session)

    with pytest.raises(StoreUnavailable):
        store.get("data/demo/users.json")

    assert session.request.call_args.kwargs["timeout"] == 15.0


def test_unexpected_read_status_is_unavailable():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.return_value = make_response(403, {"message": "rate limited"})
    store = GitHubStore(GithubConfig(token="t", owner="o", repo="r"), session=session)

    with pytest.raises(StoreUnavailable) as excinfo:
        store.read_json("data/demo/users.json", {})

    assert excinfo.value.status_code == 403


def test_request_shape():
    config = GithubConfig(token="tok", owner="acme", repo="menus", branch="live")
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.return_value = make_response(201, {"content": {"sha": "abc"}})
    store = GitHubStore(config, session=session)

    store.put("data/demo/users.json", {"allowed": ["admin"]}, "msg", discover=False)

    method, url = session.request.call_args.args
    body = session.request.call_args.kwargs["json"]
    assert method == "PUT"
    assert url == (
        "https://api.github.com/repos/acme/menus/contents/data/demo/users.json"
    )
    assert body["branch"] == "live"
    assert body["message"] == "msg"
    assert "sha" not in body
    decoded = base64.b64decode(body["content"]).decode("utf-8")
    assert decoded == '{\n  "allowed": [\n    "admin"\n  ]\n}\n'
    assert session.headers["Authorization"] == "Bearer tok"


def test_build_store_requires_configuration(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    with pytest.raises(MissingGithubConfig) as excinfo:
        build_store()

    assert excinfo.value.presence["GITHUB_TOKEN"] is False


def test_build_store_from_environment(monkeypatch):
    from app.config import reset_settings

    monkeypatch.setenv("GITHUB_TOKEN", "tok")
    monkeypatch.setenv("GITHUB_OWNER", "acme")
    monkeypatch.setenv("GITHUB_REPO", "menus")
    reset_settings()

    store = build_store()

    assert store.config.owner == "acme"
    assert store.config.branch == "main"


def test_get_store_closes_session_after_request(monkeypatch):
    store = MagicMock(spec=GitHubStore)
    monkeypatch.setattr("app.services.github_store.build_store", lambda: store)

    dependency = get_store()
    assert next(dependency) is store
    store.close.assert_not_called()

    with pytest.raises(StopIteration):
        next(dependency)
    store.close.assert_called_once_with()


def html_response(status_code, text):
    response = requests.Response()
    response.status_code = status_code
    response._content = text.encode("utf-8")
    response.headers["Content-Type"] = "text/html"
    return response


@pytest.mark.parametrize(
    "response",
    [
        html_response(200, "<html>proxy error</html>"),
        html_response(200, '{"content": "trunc'),
        make_response(200, [{"name": "users.json", "type": "file"}]),
    ],
)
def test_unexpected_read_body_is_unavailable(response):
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.return_value = response
    store = GitHubStore(GithubConfig(token="t", owner="o", repo="r"), session=session)

    with pytest.raises(StoreUnavailable) as excinfo:
        store.read_json("data/demo/users.json", {})

    assert excinfo.value.status_code == 200


def test_unexpected_write_body_is_unavailable():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.return_value = html_response(201, "<html>gateway</html>")
    store = GitHubStore(GithubConfig(token="t", owner="o", repo="r"), session=session)

    with pytest.raises(StoreUnavailable):
        store.put("data/demo/users.json", {}, "msg", discover=False)


def test_validation_failure_is_not_a_conflict():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.side_effect = [
        make_response(404, {"message": "Not Found"}),
        make_response(422, {"message": "Invalid request. path is not valid"}),
    ]
    store = GitHubStore(
        GithubConfig(token="t", owner="o", repo="r"), session=session, write_retries=2
    )

    with pytest.raises(StoreUnavailable) as excinfo:
        store.update_json("data/demo/users.json", {}, lambda data: True, "msg")

    assert excinfo.value.status_code == 422
    # read plus a single write, no retries
    assert session.request.call_count == 2


def test_missing_sha_is_a_conflict():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    session.request.return_value = make_response(
        422, {"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'}
    )
    store = GitHubStore(GithubConfig(token="t", owner="o", repo="r"), session=session)

    with pytest.raises(StoreWriteConflict):
        store.put("data/demo/users.json", {}, "msg", discover=False)
