"""Exception hierarchy for parley."""


class ParleyError(Exception):
    """Base class for all parley errors."""


class ProviderError(ParleyError):
    """The LLM provider failed while generating a response.

    Raised for transport failures and provider-side errors alike. The
    dispatcher never retries; the original exception is chained.
    """


class ConversationNotFoundError(ParleyError):
    """No conversation is stored under the requested id."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class PersistenceError(ParleyError):
    """A conversation file could not be written or read back."""
