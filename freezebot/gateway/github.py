"""GitHub API gateway."""

from typing import Any, Dict, List

import requests

from freezebot.errors import GatewayError
from freezebot.gateway.auth import TokenProvider
from freezebot.gateway.base import CheckConclusion, RemoteGateway
from freezebot.models import PullRequestRef

PER_PAGE = 100


def _pr_from_api(data: Dict[str, Any]) -> PullRequestRef:
    head = data.get("head") or {}
    base = data.get("base") or {}
    return PullRequestRef(
        number=data["number"],
        head_sha=head.get("sha", ""),
        base_branch=base.get("ref", ""),
    )


class GitHubGateway(RemoteGateway):
    """GitHub REST implementation (pulls, check runs, issue comments)."""

    def __init__(
        self,
        tokens: TokenProvider,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        check_name: str = "freeze-status",
        session: requests.Session | None = None,
    ) -> None:
        self._tokens = tokens
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._check_name = check_name
        self._session = session or requests.Session()
        self._session.headers["Accept"] = "application/vnd.github+json"

    def _request(
        self,
        installation_id: int,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self._api_url}{path}" if path.startswith("/") else f"{self._api_url}/{path}"
        headers = {"Authorization": f"token {self._tokens.token_for(installation_id)}"}
        try:
            resp = self._session.request(
                method, url, params=params, json=json, headers=headers, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise GatewayError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            if resp.status_code == 401:
                self._tokens.invalidate(installation_id)
            msg = resp.text or resp.reason or str(resp.status_code)
            try:
                msg = resp.json().get("message", msg)
            except (ValueError, AttributeError):
                pass
            raise GatewayError(f"{resp.status_code}: {msg}", status_code=resp.status_code)
        return resp

    def list_open_change_requests(self, installation_id: int, repo: str) -> List[PullRequestRef]:
        prs: List[PullRequestRef] = []
        page = 1
        while True:
            resp = self._request(
                installation_id,
                "GET",
                f"/repos/{repo}/pulls",
                params={"state": "open", "per_page": PER_PAGE, "page": page},
            )
            data = resp.json() or []
            prs.extend(_pr_from_api(d) for d in data)
            if len(data) < PER_PAGE:
                return prs
            page += 1

    def get_change_request(self, installation_id: int, repo: str, number: int) -> PullRequestRef:
        resp = self._request(installation_id, "GET", f"/repos/{repo}/pulls/{number}")
        return _pr_from_api(resp.json())

    def create_status(
        self,
        installation_id: int,
        repo: str,
        head_sha: str,
        conclusion: CheckConclusion,
        title: str,
        summary: str,
        text: str | None = None,
    ) -> None:
        output: Dict[str, Any] = {"title": title, "summary": summary}
        if text:
            output["text"] = text
        self._request(
            installation_id,
            "POST",
            f"/repos/{repo}/check-runs",
            json={
                "name": self._check_name,
                "head_sha": head_sha,
                "status": "completed",
                "conclusion": conclusion.value,
                "output": output,
            },
        )

    def post_comment(self, installation_id: int, repo: str, issue_number: int, body: str) -> None:
        self._request(
            installation_id,
            "POST",
            f"/repos/{repo}/issues/{issue_number}/comments",
            json={"body": body},
        )
