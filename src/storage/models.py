from __future__ import annotations

from dataclasses import dataclass

IMAGE_CONTENT_PREFIX = "data:image/jpeg;base64,"
ANONYMOUS_NAME = "anonymous"


def build_message_link(group_id: int, message_id: int) -> str:
    """Return the permalink of a group message; also the row primary key.

    Supergroup ids carry a ``-100`` prefix that the public link omits; other
    (linkable) groups use the absolute value of their id.
    """

    group_text = str(int(group_id))
    if group_text.startswith("-100"):
        processed_id = group_text[4:]
    else:
        processed_id = str(abs(int(group_id)))
    return f"https://t.me/c/{processed_id}/{int(message_id)}"


@dataclass(frozen=True)
class MessageRecord:
    id: str
    group_id: int
    group_name: str
    user_name: str
    content: str
    message_id: int
    timestamp: int

    @classmethod
    def create(
        cls,
        group_id: int,
        message_id: int,
        user_name: str,
        content: str,
        timestamp: int,
        group_name: str | None = None,
    ) -> "MessageRecord":
        return cls(
            id=build_message_link(group_id, message_id),
            group_id=int(group_id),
            group_name=(group_name or "").strip() or ANONYMOUS_NAME,
            user_name=(user_name or "").strip() or ANONYMOUS_NAME,
            content=content,
            message_id=int(message_id),
            timestamp=int(timestamp),
        )

    @property
    def link(self) -> str:
        return build_message_link(self.group_id, self.message_id)

    @property
    def is_image(self) -> bool:
        return self.content.startswith(IMAGE_CONTENT_PREFIX)


@dataclass(frozen=True)
class GroupActivity:
    group_id: int
    message_count: int
