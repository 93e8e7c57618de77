"""
Zendesk-specific data models
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


# Source name recorded on imported messages and state changes
ZENDESK_SOURCE = "Zendesk"

# Conversation-scoped settings
COMMENT_MARKER_SETTING = "CommentMarker"
TICKET_STATUS_SETTING = "ZendeskTicketStatus"


class ZendeskTicketStatus(str, Enum):
    """Zendesk ticket status values"""
    NEW = "new"
    OPEN = "open"
    PENDING = "pending"
    HOLD = "hold"
    SOLVED = "solved"
    CLOSED = "closed"


class ZendeskSettings(BaseModel):
    """Per-organization Zendesk integration settings"""
    subdomain: Optional[str] = None
    api_token: Optional[str] = None
    # When set, authenticate with email/token basic auth instead of a bearer token
    email: Optional[str] = None
    webhook_token: Optional[str] = None
    webhook_id: Optional[int] = None

    @property
    def has_api_credentials(self) -> bool:
        return bool(self.subdomain and self.api_token)


class ZendeskPhoto(BaseModel):
    content_url: Optional[str] = None


class ZendeskUser(BaseModel):
    """Zendesk user model"""
    id: Optional[int] = None
    url: Optional[str] = None
    name: str = ""
    email: Optional[str] = None
    role: Optional[str] = "end-user"
    organization_id: Optional[int] = None
    external_id: Optional[str] = None
    verified: Optional[bool] = None
    remote_photo_url: Optional[str] = None
    photo: Optional[ZendeskPhoto] = None

    @property
    def avatar_url(self) -> Optional[str]:
        if self.remote_photo_url:
            return self.remote_photo_url
        return self.photo.content_url if self.photo else None


class ZendeskUserMetadata(BaseModel):
    """Metadata stored on a Zendesk linked identity"""
    role: Optional[str] = None
    subdomain: Optional[str] = None
    is_facade: bool = False


class ZendeskAttachment(BaseModel):
    id: Optional[int] = None
    file_name: str = ""
    content_url: str = ""
    content_type: Optional[str] = None
    size: int = 0
    inline: bool = False


class ZendeskCommentSystemMetadata(BaseModel):
    # e.g. "TicketBridge/1.0.0" when the comment was posted through our API client
    client: Optional[str] = None


class ZendeskCommentMetadata(BaseModel):
    system: Optional[ZendeskCommentSystemMetadata] = None


class ZendeskComment(BaseModel):
    """Zendesk ticket comment model"""
    id: Optional[int] = None
    author_id: int = 0
    body: str = ""
    html_body: Optional[str] = None
    public: bool = True
    created_at: Optional[datetime] = None
    attachments: List[ZendeskAttachment] = Field(default_factory=list)
    metadata: Optional[ZendeskCommentMetadata] = None

    @property
    def client(self) -> Optional[str]:
        if self.metadata and self.metadata.system:
            return self.metadata.system.client
        return None


class ZendeskCommentPage(BaseModel):
    """One page of a cursor-paginated comment listing"""
    comments: List[ZendeskComment] = Field(default_factory=list)
    has_more: bool = False
    after_cursor: Optional[str] = None


class ZendeskTicket(BaseModel):
    """Zendesk ticket model"""
    id: int
    url: Optional[str] = None
    subject: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    type: Optional[str] = None
    requester_id: Optional[int] = None
    organization_id: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ZendeskWebhookPayload(BaseModel):
    """Body posted by the Zendesk trigger webhook"""
    model_config = ConfigDict(populate_by_name=True)

    ticket_url: str = Field(alias="TicketUrl")
    ticket_status: Optional[str] = Field(default=None, alias="TicketStatus")
    current_user_id: Optional[int] = Field(default=None, alias="CurrentUserId")


class ZendeskImportResult(BaseModel):
    """Outcome of one comment import run"""
    ticket_url: str
    conversation_id: Optional[int] = None
    comments_seen: int = 0
    comments_posted: int = 0
    comments_skipped: int = 0
    cursor: Optional[str] = None
    status_applied: Optional[str] = None
    skipped_reason: Optional[str] = None
