import logging
from typing import Optional

from .errors import UpstreamResponseError

logger = logging.getLogger(__name__)

NO_REPLY = "I'm not sure how to respond to that."

CASUAL_SYSTEM_PROMPT = """You are a friendly AI assistant. Respond naturally and conversationally to the user's messages.
You can handle greetings, general knowledge questions, casual conversation, and small talk.

Examples:
- User: "How are you?"
  AI: "I'm doing great, thanks for asking! How about you?"
- User: "Tell me a joke."
  AI: "Why don't skeletons fight each other? They don't have the guts!"

Answer in an engaging, helpful manner."""


def completion_text(response) -> Optional[str]:
    """First choice's message content, or None when the reply has no choices."""
    choices = getattr(response, "choices", None)
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


class FallbackResponder:
    def __init__(self, client, model: str):
        self._client = client
        self._model = model

    async def _complete(self, messages: list[dict], **kwargs) -> str:
        response = await self._client.chat.completions.create(
            model=self._model, messages=messages, **kwargs
        )
        if not getattr(response, "choices", None):
            raise UpstreamResponseError("Invalid OpenAI response format.")
        return completion_text(response) or ""

    async def reply(self, user_message: str) -> str:
        """Plain completion for messages no dataset can answer; text is returned as-is."""
        logger.info("Sending user message to fallback completion")
        return await self._complete([{"role": "user", "content": user_message}])

    async def casual_reply(self, user_message: str) -> str:
        text = await self._complete(
            [
                {"role": "system", "content": CASUAL_SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            max_tokens=200,
            temperature=0.7,
        )
        return text or NO_REPLY
