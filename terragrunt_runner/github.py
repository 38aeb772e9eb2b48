from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib import error, parse, request

from pydantic import ValidationError

from .report import BOT_COMMENT_HEADERS
from .schemas import CommentCreateRequest, IssueComment

logger = logging.getLogger(__name__)

NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')
PER_PAGE = 100


class GitHubApiError(Exception):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class GitHubCommentClient:
    """Issue-comment calls for one pull request, over the REST API."""

    def __init__(
        self,
        *,
        token: str,
        owner: str,
        repo: str,
        pull_request: int,
        api_url: str = "https://api.github.com",
        timeout_seconds: int = 30,
    ):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.pull_request = pull_request
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    @property
    def comments_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/issues/{self.pull_request}/comments"

    def _request(self, method: str, url: str, payload: dict[str, Any] | None = None) -> tuple[Any, dict[str, str]]:
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "terragrunt-runner",
        }
        body = None
        if payload is not None:
            body = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = request.Request(url, data=body, headers=headers, method=method)

        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                response_text = response.read().decode("utf-8", errors="replace")
                response_headers = {key.lower(): value for key, value in response.headers.items()}
        except error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise GitHubApiError(f"{method} {url} failed status={exc.code} detail={detail[:500]}", status=exc.code) from exc
        except error.URLError as exc:
            raise GitHubApiError(f"{method} {url} failed: {exc.reason}") from exc

        if not response_text.strip():
            return None, response_headers
        try:
            return json.loads(response_text), response_headers
        except json.JSONDecodeError as exc:
            raise GitHubApiError(f"{method} {url} returned non-JSON response chars={len(response_text)}") from exc

    def list_comments(self) -> list[IssueComment]:
        comments: list[IssueComment] = []
        url: str | None = f"{self.comments_url}?{parse.urlencode({'per_page': PER_PAGE})}"
        while url:
            data, headers = self._request("GET", url)
            if not isinstance(data, list):
                raise GitHubApiError(f"Unexpected comment list payload from {url}")
            for item in data:
                try:
                    comments.append(IssueComment.model_validate(item))
                except ValidationError:
                    logger.warning("Skipping malformed comment payload")
            match = NEXT_LINK_RE.search(headers.get("link", ""))
            url = match.group(1) if match else None
        return comments

    def delete_comment(self, comment_id: int) -> None:
        url = f"{self.api_url}/repos/{self.owner}/{self.repo}/issues/comments/{comment_id}"
        self._request("DELETE", url)

    def create_comment(self, body: str) -> int:
        payload = CommentCreateRequest(body=body)
        data, _ = self._request("POST", self.comments_url, payload.model_dump())
        comment = IssueComment.model_validate(data)
        logger.info("Created comment id=%s chars=%s", comment.id, len(body))
        return comment.id

    def delete_old_comments(self, headers: tuple[str, ...] = BOT_COMMENT_HEADERS) -> int:
        """Delete earlier bot comments carrying one of the runner's headers.

        A failed delete is logged and skipped.
        """
        deleted = 0
        for comment in self.list_comments():
            if not comment.is_bot or not comment.body:
                continue
            if not any(header in comment.body for header in headers):
                continue
            try:
                self.delete_comment(comment.id)
                deleted += 1
            except GitHubApiError as exc:
                logger.warning("Failed to delete comment id=%s: %s", comment.id, exc)
        logger.info("Deleted %s old comment(s)", deleted)
        return deleted
