"""
Resolution of chat members to Zendesk users and back
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ticketbridge.core.config import get_settings
from ticketbridge.database.repositories.linked_identity_repository import LinkedIdentityRepository
from ticketbridge.database.repositories.member_repository import MemberRepository
from ticketbridge.database.repositories.organization_repository import OrganizationRepository
from ticketbridge.integrations.base import ApiError, IntegrationError
from ticketbridge.integrations.slack.client import SlackClientFactory
from ticketbridge.integrations.zendesk.client import ZendeskClient
from ticketbridge.integrations.zendesk.links import ZendeskUserLink
from ticketbridge.integrations.zendesk.models import ZendeskUser, ZendeskUserMetadata
from ticketbridge.models.linked_identity import LinkedIdentity, LinkedIdentityType
from ticketbridge.models.member import Member
from ticketbridge.models.organization import Organization

logger = logging.getLogger(__name__)


@dataclass
class SlackMessageAuthor:
    """How an imported comment's author is shown in chat"""
    display_name: str
    avatar_url: Optional[str] = None
    # Set when the Zendesk user is one of our members
    member: Optional[Member] = None


class ZendeskResolver:
    """
    Maps members to Zendesk users.

    Only the mapping is cached (as a LinkedIdentity); user profiles are always
    fetched live from Zendesk.
    """

    def __init__(self, db: Session, slack_client_factory: Optional[SlackClientFactory] = None):
        self.linked_identity_repository = LinkedIdentityRepository(db)
        self.member_repository = MemberRepository(db)
        self.organization_repository = OrganizationRepository(db)
        self.slack_client_factory = slack_client_factory or SlackClientFactory()
        self.settings = get_settings()

    def resolve_zendesk_identity(
        self,
        client: ZendeskClient,
        organization: Organization,
        member: Member,
        zendesk_organization_id: Optional[int] = None,
    ) -> Optional[ZendeskUser]:
        """
        Find or create the Zendesk user that represents ``member``

        Order: existing linked identity, then a user with the member's email,
        then a new "facade" user created for the member. API failures while
        searching or creating propagate.

        Args:
            client: Zendesk client of the organization's integration
            organization: Organization that owns the integration
            member: Member to resolve (may belong to a foreign organization)
            zendesk_organization_id: Zendesk organization to put a new facade user in

        Returns:
            The Zendesk user, or None if Zendesk returned no usable user
        """
        identity, metadata = self.linked_identity_repository.get_linked_identity(
            organization, member, LinkedIdentityType.ZENDESK, ZendeskUserMetadata
        )
        if identity is not None and identity.external_id:
            user = self._get_linked_user(client, identity, metadata)
            if user is not None:
                return user

        email = member.email or self._get_platform_email(organization, member)
        if email:
            user = self._find_user_by_email(client, email)
            if user is not None:
                self._link(client, organization, member, user, is_facade=False)
                return user

        user = self._create_facade_user(client, organization, member, zendesk_organization_id)
        if user is None or user.id is None:
            logger.warning(f"Zendesk returned no user when creating a facade user for member {member.id}")
            return None

        self._link(client, organization, member, user, is_facade=True)
        return user

    def resolve_message_author(
        self,
        client: ZendeskClient,
        organization: Organization,
        author_id: int,
    ) -> SlackMessageAuthor:
        """
        Decide how to present a Zendesk comment author in chat

        Args:
            client: Zendesk client
            organization: Organization that owns the integration
            author_id: Zendesk user id of the comment author (negative for system comments)
        """
        if author_id < 0:
            return SlackMessageAuthor(display_name="System")

        user_url = ZendeskUserLink(client.subdomain, author_id).api_url
        identity = self.linked_identity_repository.get_by_external_id(
            organization, LinkedIdentityType.ZENDESK, user_url
        )
        if identity is not None:
            member = identity.member
            return SlackMessageAuthor(member.display_name, member.avatar_url, member)

        user = client.get_user(author_id)
        member = self.member_repository.get_by_email(organization, user.email) if user.email else None
        if member is not None:
            self._link(client, organization, member, user, is_facade=False)
            return SlackMessageAuthor(member.display_name, member.avatar_url, member)

        return SlackMessageAuthor(user.name, user.avatar_url, None)

    def _get_linked_user(
        self,
        client: ZendeskClient,
        identity: LinkedIdentity,
        metadata: Optional[ZendeskUserMetadata],
    ) -> Optional[ZendeskUser]:
        link = ZendeskUserLink.parse(identity.external_id)
        if link is None:
            logger.warning(f"Linked identity {identity.id} has an invalid Zendesk user URL: {identity.external_id}")
            return None
        if link.subdomain != (client.subdomain or "").lower():
            logger.info(f"Linked identity {identity.id} points at another Zendesk instance ({link.subdomain})")
            return None

        try:
            user = client.get_user(link.user_id)
        except ApiError as e:
            if e.is_not_found:
                logger.info(f"Linked Zendesk user {link.user_id} no longer exists")
                return None
            raise

        if metadata is None or not identity.external_name:
            refreshed = ZendeskUserMetadata(
                role=user.role,
                subdomain=client.subdomain,
                is_facade=metadata.is_facade if metadata else False,
            )
            self.linked_identity_repository.update_metadata(identity, user.name, refreshed)
        return user

    def _get_platform_email(self, organization: Organization, member: Member) -> Optional[str]:
        """The member's email as the chat platform knows it"""
        api_token = self.organization_repository.get_api_token(organization)
        if not api_token or not member.platform_user_id:
            return None
        try:
            slack_user = self.slack_client_factory.create_client(api_token).get_user_info(member.platform_user_id)
        except IntegrationError as e:
            logger.warning(f"Could not look up Slack profile of {member.platform_user_id}: {e}")
            return None
        return slack_user.email

    def _find_user_by_email(self, client: ZendeskClient, email: str) -> Optional[ZendeskUser]:
        # Search is fuzzy, so insist on an exact match
        candidates = client.search_users(f"email:{email}")
        return next(
            (user for user in candidates if user.email and user.email.lower() == email.lower()),
            None,
        )

    def _create_facade_user(
        self,
        client: ZendeskClient,
        organization: Organization,
        member: Member,
        zendesk_organization_id: Optional[int],
    ) -> Optional[ZendeskUser]:
        member_organization = member.organization
        email = (
            f"{member.platform_user_id}@{member_organization.slug}.{member_organization.platform_id}"
            f".{member_organization.platform_type.lower()}.{self.settings.facade_email_domain}"
        )
        user_data: Dict[str, Any] = {
            "name": f"{member.display_name} (via {organization.bot_name})",
            "email": email,
            "role": "end-user",
            "external_id": f"{self.settings.product_name}:{member.platform_user_id}",
            "verified": True,
        }
        if zendesk_organization_id is not None:
            user_data["organization_id"] = zendesk_organization_id

        logger.info(f"Creating Zendesk facade user {email} for member {member.id}")
        return client.create_or_update_user(user_data)

    def _link(self, client: ZendeskClient, organization: Organization, member: Member, user: ZendeskUser, is_facade: bool):
        self.linked_identity_repository.link_identity(
            organization,
            member,
            LinkedIdentityType.ZENDESK,
            external_id=ZendeskUserLink(client.subdomain, user.id).api_url,
            external_name=user.name,
            metadata=ZendeskUserMetadata(role=user.role, subdomain=client.subdomain, is_facade=is_facade),
        )
