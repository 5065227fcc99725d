from typing import Optional

from services.api.client import ApiError, RipaltApiClient
from services.chat.appender import LineAppender
from services.chat.registry import RoomRegistry
from shared.chat.models import ChatMessage
from shared.logging.logger import get_logger

log = get_logger("chat.composer")


class ChatComposer:
    """
    Publishes messages into a chat room.

    The echoed message is rendered right away; when the next poll delivers
    it again the appender drops it by id.
    """

    def __init__(
        self,
        *,
        api: RipaltApiClient,
        registry: RoomRegistry,
        appender: LineAppender,
    ):
        self.api = api
        self.registry = registry
        self.appender = appender

    async def send(self, room_id: str, text: str) -> Optional[ChatMessage]:
        binding = self.registry.get(room_id)

        text = (text or "").strip()
        if not text:
            log.warning(f"[{room_id}] Refusing to publish an empty message")
            return None

        try:
            payload = await self.api.publish_message(binding.room.network_id, text)
            message = ChatMessage.from_payload(payload)
        except (ApiError, ValueError) as e:
            log.error(f"[{room_id}] Publish failed: {e}")
            return None

        self.appender.append(binding.surface, message)
        log.info(f"[{room_id}] Published message {message.message_id}")
        return message
