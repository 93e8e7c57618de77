from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from ticketbridge.models.member import Member
from ticketbridge.models.organization import Organization
from .base_repository import BaseRepository
import logging

logger = logging.getLogger(__name__)


class MemberRepository(BaseRepository[Member]):
    """Repository for chat members"""

    def __init__(self, db: Session):
        super().__init__(Member, db)

    def get_by_platform_user_id(self, organization: Organization, platform_user_id: str) -> Optional[Member]:
        return (
            self.db.query(Member)
            .filter(
                Member.organization_id == organization.id,
                Member.platform_user_id == platform_user_id,
            )
            .first()
        )

    def get_by_email(self, organization: Organization, email: str) -> Optional[Member]:
        """Find a (non-bot) member of the organization by case-insensitive email"""
        if not email:
            return None
        return (
            self.db.query(Member)
            .filter(
                Member.organization_id == organization.id,
                Member.is_bot == False,  # noqa: E712
                func.lower(Member.email) == email.lower(),
            )
            .first()
        )

    def ensure_bot_member(self, organization: Organization) -> Member:
        """Get the member that represents the bot itself, creating it on first use"""
        bot = (
            self.db.query(Member)
            .filter(Member.organization_id == organization.id, Member.is_bot == True)  # noqa: E712
            .first()
        )
        if bot:
            return bot

        logger.info(f"Creating bot member for organization {organization.id}")
        return self.create({
            "organization_id": organization.id,
            "platform_user_id": organization.bot_user_id or f"bot-{organization.platform_id}",
            "display_name": organization.bot_name,
            "is_bot": True,
        })

    def find_for_platform_user(self, organization: Organization, platform_user_id: str) -> Optional[Member]:
        """
        Find the member for a user seen in one of the organization's rooms.
        Users of other organizations (shared channels) are members of their own organization.
        """
        member = self.get_by_platform_user_id(organization, platform_user_id)
        if member:
            return member
        return (
            self.db.query(Member)
            .filter(Member.platform_user_id == platform_user_id)
            .order_by(Member.id)
            .first()
        )
