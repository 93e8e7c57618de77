from ticketbridge.models.conversation import Conversation
from ticketbridge.services.conversation_events import ConversationMessage, ConversationStateChanged


class ConversationListener:
    """Callbacks run synchronously after ConversationService records a change"""

    def on_new_message(self, conversation: Conversation, message: ConversationMessage):
        pass

    def on_state_changed(self, state_changed: ConversationStateChanged):
        pass
