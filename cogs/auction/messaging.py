# cogs/auction/messaging.py
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from utils.auction_data import Message

logger = logging.getLogger("auction_bot")


class MessageStore:
    """Persisted conversations between the site and its users."""

    async def get_conversation_id_for_user(
        self, session: AsyncSession, user_id: int
    ) -> Optional[int]:
        """Return the conversation the user most recently took part in, if any."""
        result = await session.execute(
            select(Message.conversation_id)
            .where(Message.user_id == user_id)
            .order_by(Message.sent_at.desc(), Message.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def insert_system_message(
        self,
        session: AsyncSession,
        user_id: int,
        content: str,
        conversation_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Message:
        """Store a message sent on behalf of the site, opening a conversation if needed."""
        if conversation_id is None:
            result = await session.execute(
                select(func.coalesce(func.max(Message.conversation_id), 0) + 1)
            )
            conversation_id = result.scalar_one()

        message = Message(
            conversation_id=conversation_id,
            user_id=user_id,
            message_content=content,
            is_from_admin=True,
        )
        if now is not None:
            message.sent_at = now
        session.add(message)
        await session.flush()
        logger.info(f"Stored system message {message.id} for user {user_id}")
        return message
