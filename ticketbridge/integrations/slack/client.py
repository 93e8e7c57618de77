"""
Slack API client for posting imported messages and reading threads
"""
import logging
import time
from typing import Dict, List, Any, Optional
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError

from ticketbridge.integrations.base import (
    RateLimiter,
    AuthenticationError,
    IntegrationError,
    ChatPostError,
)
from ticketbridge.integrations.slack.models import SlackMessage, SlackUser

logger = logging.getLogger(__name__)

AUTH_ERRORS = {"invalid_auth", "account_inactive", "token_revoked", "not_authed"}


class SlackClient:
    """
    Slack bot API client with rate limiting
    """

    def __init__(self, bot_token: str):
        """
        Args:
            bot_token: Bot User OAuth token (xoxb-...)
        """
        if not bot_token:
            raise AuthenticationError("Missing Slack bot token")

        self.bot_client = WebClient(token=bot_token)

        # Conservative limit; chat.postMessage is roughly one message per second per channel
        self.rate_limiter = RateLimiter(max_requests=50, time_window=60)

    def _make_api_call(self, method: str, **kwargs) -> Dict[str, Any]:
        """
        Make rate-limited API call to Slack
        """
        if not self.rate_limiter.can_make_request():
            wait_time = self.rate_limiter.get_wait_time()
            if wait_time > 0:
                logger.info(f"Rate limit reached, waiting {wait_time:.1f} seconds")
                time.sleep(wait_time)

        self.rate_limiter.record_request()

        try:
            api_method = getattr(self.bot_client, method)
            response = api_method(**kwargs)
            return response.data

        except SlackApiError as e:
            error = e.response.get("error", "unknown_error")
            if error in AUTH_ERRORS:
                raise AuthenticationError(f"Slack authentication error: {error}") from e
            raise IntegrationError(f"Slack API error calling {method}: {error}") from e

        except SlackClientError as e:
            raise IntegrationError(f"Slack client error: {str(e)}") from e

    def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        username: Optional[str] = None,
        icon_url: Optional[str] = None,
        blocks: Optional[List[Any]] = None,
    ) -> str:
        """
        Post a message, optionally as a thread reply with a custom author

        Returns:
            The ts of the posted message

        Raises:
            ChatPostError: Slack rejected the message
        """
        kwargs = {"channel": channel, "text": text}
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        if username:
            kwargs["username"] = username
        if icon_url:
            kwargs["icon_url"] = icon_url
        if blocks:
            kwargs["blocks"] = blocks

        try:
            response = self._make_api_call("chat_postMessage", **kwargs)
        except AuthenticationError:
            raise
        except IntegrationError as e:
            raise ChatPostError(f"Failed to post message to {channel}: {e}", str(e)) from e
        return response["ts"]

    def get_permalink(self, channel: str, message_ts: str) -> Optional[str]:
        response = self._make_api_call("chat_getPermalink", channel=channel, message_ts=message_ts)
        return response.get("permalink")

    def get_user_info(self, user_id: str) -> SlackUser:
        response = self._make_api_call("users_info", user=user_id)
        return SlackUser.from_api(response["user"])

    def get_thread_messages(self, channel: str, thread_ts: str) -> List[SlackMessage]:
        """Get every message of a thread, the root message first"""
        messages = []
        cursor = None

        while True:
            kwargs = {"channel": channel, "ts": thread_ts, "limit": 200}
            if cursor:
                kwargs["cursor"] = cursor

            response = self._make_api_call("conversations_replies", **kwargs)
            messages.extend(SlackMessage.from_api(channel, m) for m in response.get("messages", []))

            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break

        return messages


class SlackClientFactory:
    """Builds bot clients from an organization's (decrypted) API token"""

    def create_client(self, api_token: str) -> SlackClient:
        return SlackClient(api_token)
