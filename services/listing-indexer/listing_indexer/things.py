"""
Entity model.

Thing data nodes are parsed into a closed set of variants discriminated on
`kind`: Submission, Comment, ChatMessage. Anything else (including data of a
known kind that fails validation) becomes UnknownThing, which belongs to no
listing.

Field names on the wire are camelCase (`authorId`, `opId`, ...); the models
accept both the alias and the attribute name.
"""
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

ANON_TAGGER = "anon"


class ThingBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    author_id: Optional[str] = Field(default=None, alias="authorId")
    topic: str = ""
    timestamp: float = 0.0

    @field_validator("topic", mode="before")
    @classmethod
    def _topic_or_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def normalized_topic(self) -> str:
        return self.topic.strip().lower()


class Submission(ThingBase):
    kind: Literal["submission"] = "submission"
    domain: Optional[str] = None
    url: Optional[str] = None

    @property
    def domain_name(self) -> str:
        """Explicit domain, else the host of `url` without a leading www."""
        if self.domain:
            return self.domain
        if not self.url:
            return ""
        host = urlparse(self.url).hostname or ""
        return host[4:] if host.startswith("www.") else host


class Comment(ThingBase):
    kind: Literal["comment"] = "comment"
    op_id: Optional[str] = Field(default=None, alias="opId")
    reply_to_id: Optional[str] = Field(default=None, alias="replyToId")
    is_command: bool = Field(default=False, alias="isCommand")


class ChatMessage(ThingBase):
    kind: Literal["chatmsg"] = "chatmsg"


class UnknownThing(ThingBase):
    kind: str = ""


Thing = Union[Submission, Comment, ChatMessage, UnknownThing]

_KnownThing = TypeAdapter(
    Annotated[Union[Submission, Comment, ChatMessage], Field(discriminator="kind")]
)


def parse_thing(data: Optional[dict]) -> Optional[Thing]:
    """Parse a thing data node; None when the node is absent."""
    if not data:
        return None
    try:
        return _KnownThing.validate_python(data)
    except ValidationError:
        author_id = data.get("authorId")
        return UnknownThing(
            kind=str(data.get("kind") or ""),
            author_id=author_id if isinstance(author_id, str) else None,
        )


class ThingScores(BaseModel):
    """Vote-count record maintained by the tabulator."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    up: float = 0
    down: float = 0
    comment: float = 0
    replies: float = 0
    commands: dict[str, Any] = Field(default_factory=dict)

    @property
    def taggers(self) -> list[str]:
        return [key for key in self.commands if key != ANON_TAGGER]

    @classmethod
    def parse(cls, data: Optional[dict]) -> "ThingScores":
        try:
            return cls.model_validate(data or {})
        except ValidationError:
            return cls()
