"""
Rendering of chat messages and conversations into Zendesk comments and tickets
"""
import html
import re
import logging
from typing import Any, Dict, List, Optional

from ticketbridge.core.config import get_settings
from ticketbridge.database.repositories.member_repository import MemberRepository
from ticketbridge.models.conversation import Conversation
from ticketbridge.models.member import Member
from ticketbridge.models.organization import Organization
from ticketbridge.services.conversation_events import ConversationMessage

logger = logging.getLogger(__name__)

CUSTOM_FIELD_PREFIX = "custom_field:"


def member_profile_url(organization: Organization, member: Member) -> str:
    domain = organization.domain or "slack.com"
    return f"https://{domain}/team/{member.platform_user_id}"


class ZendeskFormatter:
    """Turns Slack messages into Zendesk comment HTML and ticket payloads"""

    def __init__(self, member_repository: Optional[MemberRepository] = None):
        self.member_repository = member_repository
        self._code_block = re.compile(r"```\n?(.*?)\n?```", re.DOTALL)
        self._control = re.compile(r"<([^<>]+)>")
        self._inline_code = re.compile(r"`([^`\n]+)`")
        self._bold = re.compile(r"(?<![\w*])\*(?!\s)([^*\n]+?)(?<!\s)\*(?![\w*])")
        self._italic = re.compile(r"(?<![\w_])_(?!\s)([^_\n]+?)(?<!\s)_(?![\w_])")
        self._strike = re.compile(r"(?<![\w~])~(?!\s)([^~\n]+?)(?<!\s)~(?![\w~])")

    def create_comment(self, conversation: Conversation, message: ConversationMessage, author_id: int) -> Dict[str, Any]:
        """
        Build the comment for a chat reply

        Args:
            conversation: The linked conversation
            message: The chat message to forward
            author_id: Zendesk user id the comment is attributed to
        """
        author = message.from_member
        body = self.render_mrkdwn(message.text, message.organization)

        parts = [
            "\n",
            f'<strong><a href="{message.message_url}">New reply</a> from '
            f'<a href="{member_profile_url(message.organization, author)}">{html.escape(author.display_name)}</a>'
            f' in Slack:</strong><br />\n',
            f"{body}\n",
        ]

        attachments = self._render_attachments(message.files)
        if attachments:
            parts.append(attachments)

        return {
            "html_body": "".join(parts),
            "author_id": author_id,
            "public": True,
        }

    def create_ticket(
        self,
        conversation: Conversation,
        requester_id: int,
        subject: str,
        field_values: Dict[str, Any],
        actor: Member,
        organization_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Build the ticket payload for a conversation

        Args:
            conversation: Conversation the ticket is created from
            requester_id: Zendesk user id of the requester
            subject: Ticket subject
            field_values: Form values: description, tags, type, priority, custom_field:{id}
            actor: Member creating the ticket
            organization_id: Zendesk organization of the requester, if known
        """
        description = field_values.get("description") or conversation.title
        ticket: Dict[str, Any] = {
            "subject": subject,
            "requester_id": requester_id,
            "comment": {
                "html_body": self.format_ticket_body(description, conversation, actor),
            },
        }
        if organization_id is not None:
            ticket["organization_id"] = organization_id

        tags = field_values.get("tags")
        if tags:
            if isinstance(tags, str):
                tags = tags.split(",")
            ticket["tags"] = [tag.strip() for tag in tags if tag and tag.strip()]

        for key in ("type", "priority"):
            if field_values.get(key):
                ticket[key] = field_values[key]

        custom_fields: List[Dict[str, Any]] = []
        for key, value in field_values.items():
            if not key.startswith(CUSTOM_FIELD_PREFIX):
                continue
            field_id = key[len(CUSTOM_FIELD_PREFIX):]
            if not field_id.isdigit():
                logger.warning(f"Ignoring custom field with non-numeric id: {key}")
                continue
            custom_fields.append({"id": int(field_id), "value": value})
        if custom_fields:
            ticket["custom_fields"] = custom_fields

        return ticket

    def format_ticket_body(self, description: str, conversation: Conversation, actor: Member) -> str:
        """Ticket description with a footer crediting the actor and linking back"""
        settings = get_settings()
        organization = conversation.organization
        body = self.render_mrkdwn(description or "", organization)
        conversation_url = f"{settings.public_base_url.rstrip('/')}/conversations/{conversation.id}"

        return (
            f"<p>{body}</p>\n"
            f'<p style="margin-top: 2rem">\n'
            f"    <em>\n"
            f'        Created by <a href="{member_profile_url(organization, actor)}">{html.escape(actor.display_name)}</a>'
            f' from this <a href="{conversation.first_message_url}">Slack thread</a>.\n'
            f'        &bull; <a href="{conversation_url}">View on {html.escape(settings.product_name)}</a>\n'
            f"    </em>\n"
            f"</p>"
        )

    def render_mrkdwn(self, text: str, organization: Organization) -> str:
        """
        Render Slack mrkdwn as HTML.

        Slack already escapes &, < and > in message text, so text between
        control sequences is safe to emit as-is.
        """
        if not text:
            return ""
        parts = []
        for i, segment in enumerate(self._code_block.split(text)):
            if i % 2 == 1:
                parts.append(f"<pre>{segment}</pre>")
            else:
                parts.append(self._render_inline(segment, organization))
        return "".join(parts)

    def _render_inline(self, text: str, organization: Organization) -> str:
        parts = []
        position = 0
        for match in self._control.finditer(text):
            parts.append(self._render_text(text[position:match.start()]))
            parts.append(self._render_control(match.group(1), organization))
            position = match.end()
        parts.append(self._render_text(text[position:]))
        return "".join(parts)

    def _render_text(self, text: str) -> str:
        parts = []
        for i, segment in enumerate(self._inline_code.split(text)):
            if i % 2 == 1:
                parts.append(f"<code>{segment}</code>")
                continue
            segment = self._bold.sub(r"<strong>\1</strong>", segment)
            segment = self._italic.sub(r"<em>\1</em>", segment)
            segment = self._strike.sub(r"<del>\1</del>", segment)
            parts.append(segment.replace("\n", "<br />\n"))
        return "".join(parts)

    def _render_control(self, content: str, organization: Organization) -> str:
        target, _, label = content.partition("|")
        domain = organization.domain or "slack.com"

        if target.startswith("@"):
            user_id = target[1:]
            member = None
            if self.member_repository is not None:
                member = self.member_repository.get_by_platform_user_id(organization, user_id)
            if member is None:
                return f"@{html.escape(label or user_id)}"
            return f'<a href="https://{domain}/team/{user_id}">{html.escape(member.display_name)}</a>'

        if target.startswith("#"):
            channel_id = target[1:]
            return f'<a href="https://{domain}/archives/{channel_id}">#{html.escape(label or channel_id)}</a>'

        if target.startswith("!"):
            # !here, !channel, !subteam^ID
            return html.escape(label or f"@{target[1:]}")

        return f'<a href="{target}">{label or target}</a>'

    def _render_attachments(self, files: List[Dict[str, Any]]) -> str:
        links = [
            f'    <li><a href="{f["permalink"]}">{html.escape(f.get("name") or f.get("title") or "file")}</a></li>\n'
            for f in files
            if f.get("permalink")
        ]
        if not links:
            return ""
        return (
            "<hr />\n"
            "<strong>Message Attachments:</strong>\n"
            "<ol>\n"
            f"{''.join(links)}"
            "</ol>\n"
        )
