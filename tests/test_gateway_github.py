"""Unit tests for GitHub gateway (mocked API)."""

from unittest.mock import Mock, patch

import pytest
import requests

from freezebot.errors import GatewayError
from freezebot.gateway import CheckConclusion, GitHubGateway, StaticTokenProvider
from freezebot.models import PullRequestRef


@pytest.fixture
def gateway() -> GitHubGateway:
    return GitHubGateway(StaticTokenProvider("test-token"), api_url="https://api.github.com/", timeout=12.5)


def _resp(status: int = 200, data=None, text: str = "") -> Mock:
    resp = Mock()
    resp.status_code = status
    resp.text = text
    resp.reason = ""
    resp.json.return_value = data
    return resp


def _pr(number: int, sha: str = "abc", base: str = "main") -> dict:
    return {"number": number, "head": {"sha": sha}, "base": {"ref": base}, "state": "open"}


def test_list_open_change_requests_single_page(gateway: GitHubGateway) -> None:
    """list_open_change_requests maps number, head sha and base ref."""
    with patch.object(gateway._session, "request", return_value=_resp(data=[_pr(1, "s1"), _pr(2, "s2", "dev")])) as req:
        prs = gateway.list_open_change_requests(7, "owner/repo")

    assert prs == [
        PullRequestRef(number=1, head_sha="s1", base_branch="main"),
        PullRequestRef(number=2, head_sha="s2", base_branch="dev"),
    ]
    req.assert_called_once()
    call_args = req.call_args
    assert call_args[0][0] == "GET"
    assert call_args[0][1] == "https://api.github.com/repos/owner/repo/pulls"
    assert call_args[1]["params"] == {"state": "open", "per_page": 100, "page": 1}
    assert call_args[1]["headers"] == {"Authorization": "token test-token"}
    assert call_args[1]["timeout"] == 12.5


def test_list_open_change_requests_follows_pages(gateway: GitHubGateway) -> None:
    """A full page triggers a request for the next one."""
    first = [_pr(n, f"s{n}") for n in range(1, 101)]
    second = [_pr(101, "s101")]
    with patch.object(gateway._session, "request", side_effect=[_resp(data=first), _resp(data=second)]) as req:
        prs = gateway.list_open_change_requests(7, "owner/repo")

    assert len(prs) == 101
    assert req.call_count == 2
    assert req.call_args_list[1][1]["params"]["page"] == 2


def test_list_open_change_requests_error_raises(gateway: GitHubGateway) -> None:
    with patch.object(gateway._session, "request", return_value=_resp(403, {"message": "API rate limit exceeded"})):
        with pytest.raises(GatewayError) as exc_info:
            gateway.list_open_change_requests(7, "owner/repo")
    assert exc_info.value.status_code == 403
    assert "rate limit" in str(exc_info.value)


def test_network_error_raises_gateway_error(gateway: GitHubGateway) -> None:
    with patch.object(gateway._session, "request", side_effect=requests.ConnectionError("reset")):
        with pytest.raises(GatewayError) as exc_info:
            gateway.get_change_request(7, "owner/repo", 1)
    assert exc_info.value.status_code is None


def test_get_change_request(gateway: GitHubGateway) -> None:
    with patch.object(gateway._session, "request", return_value=_resp(data=_pr(5, "s5", "release"))) as req:
        pr = gateway.get_change_request(7, "owner/repo", 5)
    assert pr == PullRequestRef(number=5, head_sha="s5", base_branch="release")
    assert req.call_args[0][1].endswith("/repos/owner/repo/pulls/5")


def test_get_change_request_404(gateway: GitHubGateway) -> None:
    with patch.object(gateway._session, "request", return_value=_resp(404, {"message": "Not Found"})):
        with pytest.raises(GatewayError) as exc_info:
            gateway.get_change_request(7, "owner/repo", 999)
    assert "404" in str(exc_info.value)


def test_create_status_posts_completed_check_run(gateway: GitHubGateway) -> None:
    with patch.object(gateway._session, "request", return_value=_resp(201, {"id": 1})) as req:
        gateway.create_status(7, "owner/repo", "deadbeef", CheckConclusion.FAILURE, "Frozen", "Summary", "Details")

    call_args = req.call_args
    assert call_args[0][0] == "POST"
    assert call_args[0][1].endswith("/repos/owner/repo/check-runs")
    assert call_args[1]["json"] == {
        "name": "freeze-status",
        "head_sha": "deadbeef",
        "status": "completed",
        "conclusion": "failure",
        "output": {"title": "Frozen", "summary": "Summary", "text": "Details"},
    }


def test_create_status_without_text(gateway: GitHubGateway) -> None:
    with patch.object(gateway._session, "request", return_value=_resp(201, {"id": 1})) as req:
        gateway.create_status(7, "owner/repo", "deadbeef", CheckConclusion.SUCCESS, "Not frozen", "ok")
    assert req.call_args[1]["json"]["output"] == {"title": "Not frozen", "summary": "ok"}
    assert req.call_args[1]["json"]["conclusion"] == "success"


def test_post_comment(gateway: GitHubGateway) -> None:
    with patch.object(gateway._session, "request", return_value=_resp(201, {"id": 9})) as req:
        gateway.post_comment(7, "owner/repo", 42, "hello")
    assert req.call_args[0][0] == "POST"
    assert req.call_args[0][1].endswith("/repos/owner/repo/issues/42/comments")
    assert req.call_args[1]["json"] == {"body": "hello"}


def test_401_invalidates_cached_token() -> None:
    tokens = Mock()
    tokens.token_for.return_value = "stale"
    gw = GitHubGateway(tokens)
    with patch.object(gw._session, "request", return_value=_resp(401, {"message": "Bad credentials"})):
        with pytest.raises(GatewayError):
            gw.post_comment(3, "owner/repo", 1, "x")
    tokens.invalidate.assert_called_once_with(3)
