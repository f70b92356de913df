"""Abstract base classes for conversational lead providers."""

from abc import ABC, abstractmethod


class ConversationSession(ABC):
    """One ongoing conversation with the provider.

    Created for a single acquisition call and dropped when it returns.
    Later turns can rely on the provider remembering earlier ones.
    """

    @abstractmethod
    async def send_message(self, text: str) -> str:
        """Send one turn and return the raw reply text ("" when the reply is empty).

        Raises:
            RateLimitError: the provider signalled a rate limit.
            ProviderError: any other provider or transport failure.
        """
        ...


class LeadProvider(ABC):
    """Base class for providers that answer lead queries.

    Implementations: GeminiMapsProvider.
    """

    @abstractmethod
    def start_session(self) -> ConversationSession:
        """Open a fresh conversation with location grounding enabled."""
        ...
