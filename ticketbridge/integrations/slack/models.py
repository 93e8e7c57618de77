"""
Slack integration data models
"""
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field


@dataclass
class SlackUser:
    """Slack user information"""
    id: str
    name: Optional[str]
    real_name: Optional[str]
    display_name: Optional[str]
    email: Optional[str]
    is_bot: bool = False
    team_id: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def from_api(cls, user: Dict[str, Any]) -> "SlackUser":
        profile = user.get("profile") or {}
        return cls(
            id=user.get("id"),
            name=user.get("name"),
            real_name=user.get("real_name") or profile.get("real_name"),
            display_name=profile.get("display_name"),
            email=profile.get("email"),
            is_bot=user.get("is_bot", False),
            team_id=user.get("team_id"),
            avatar_url=profile.get("image_192") or profile.get("image_72"),
        )


@dataclass
class SlackMessage:
    """Slack message data"""
    ts: str  # Timestamp (unique message identifier)
    user: Optional[str]  # User ID who sent the message
    text: str
    channel: str
    thread_ts: Optional[str] = None  # If this is a reply, the parent message ts
    subtype: Optional[str] = None
    files: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, channel: str, message: Dict[str, Any]) -> "SlackMessage":
        return cls(
            ts=message["ts"],
            user=message.get("user"),
            text=message.get("text", ""),
            channel=channel,
            thread_ts=message.get("thread_ts"),
            subtype=message.get("subtype"),
            files=message.get("files") or [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts": self.ts,
            "user": self.user,
            "text": self.text,
            "channel": self.channel,
            "thread_ts": self.thread_ts,
            "subtype": self.subtype,
            "files": self.files,
        }
