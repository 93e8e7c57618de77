"""
Fan-out of conversation events to downstream notifiers
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from redis import Redis
from redis.exceptions import RedisError

from ticketbridge.services.conversation_events import (
    NewConversation,
    NewMessageInConversation,
    ConversationStateChanged,
)

logger = logging.getLogger(__name__)

ConversationEventHandler = Callable[[Any], None]


class ConversationPublisher:
    """
    Delivers conversation events to in-process subscribers and, when a Redis
    client is given, to the ``{channel_prefix}:{organization_id}`` pub/sub channel
    """

    def __init__(self, redis_client: Optional[Redis] = None, channel_prefix: str = "conversations"):
        self.redis = redis_client
        self.channel_prefix = channel_prefix
        self._subscribers: List[ConversationEventHandler] = []

    def subscribe(self, handler: ConversationEventHandler):
        self._subscribers.append(handler)

    def publish(self, event: Any):
        for handler in self._subscribers:
            try:
                handler(event)
            except Exception:
                # A broken notifier must not undo the sync that produced the event
                logger.exception(f"Conversation event handler failed for {type(event).__name__}")

        if self.redis is not None:
            self._publish_to_redis(event)

    def _publish_to_redis(self, event: Any):
        payload = self.serialize(event)
        channel = f"{self.channel_prefix}:{payload['organization_id']}"
        try:
            self.redis.publish(channel, json.dumps(payload))
        except RedisError as e:
            logger.error(f"Failed to publish {payload['type']} to {channel}: {e}")

    @staticmethod
    def serialize(event: Any) -> Dict[str, Any]:
        """Flatten an event into the JSON shape notifiers consume"""
        conversation = event.conversation
        payload = {
            "type": type(event).__name__,
            "organization_id": conversation.organization_id,
            "conversation_id": conversation.id,
            "state": conversation.state.value,
        }
        if isinstance(event, (NewConversation, NewMessageInConversation)):
            payload["message_id"] = event.message.message_id
            payload["message_url"] = event.message.message_url
            payload["from_member_id"] = event.message.from_member.id
        if isinstance(event, ConversationStateChanged):
            payload["old_state"] = event.old_state.value
            payload["new_state"] = event.new_state.value
            payload["actor_id"] = event.actor.id
            payload["implicit"] = event.implicit
            payload["source"] = event.source
        return payload
