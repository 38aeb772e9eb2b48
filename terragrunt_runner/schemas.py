from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CommentUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str = ""
    type: str | None = None


class IssueComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    body: str | None = None
    user: CommentUser | None = None
    html_url: str | None = None

    @property
    def is_bot(self) -> bool:
        return self.user is not None and "[bot]" in self.user.login


class CommentCreateRequest(BaseModel):
    body: str = Field(min_length=1)


class ActionOutputs(BaseModel):
    success: bool
    total_resources_to_add: int = Field(default=0, ge=0)
    total_resources_to_change: int = Field(default=0, ge=0)
    total_resources_to_destroy: int = Field(default=0, ge=0)
    total_resources_to_replace: int = Field(default=0, ge=0)

    def as_lines(self) -> list[str]:
        return [
            f"success={str(self.success).lower()}",
            f"total-resources-to-add={self.total_resources_to_add}",
            f"total-resources-to-change={self.total_resources_to_change}",
            f"total-resources-to-destroy={self.total_resources_to_destroy}",
            f"total-resources-to-replace={self.total_resources_to_replace}",
        ]
