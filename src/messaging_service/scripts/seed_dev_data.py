"""Seed development data: a direct chat and a group with a few messages."""
from __future__ import annotations

import asyncio
import logging

from messaging_service.application.dto.principal import Principal
from messaging_service.infrastructure.db.session import AsyncSessionLocal
from messaging_service.infrastructure.db.uow import SqlAlchemyUoW
from messaging_service.logging_config import configure_logging
from messaging_service.services import conversation_service, message_service

logger = logging.getLogger(__name__)

ALICE = Principal(user_id=42)
BOB = Principal(user_id=7)
CAROL = Principal(user_id=8)


async def seed() -> None:
    async with SqlAlchemyUoW(AsyncSessionLocal()) as uow:
        direct, created = await conversation_service.create_direct_conversation(
            ALICE, BOB.user_id, uow,
        )
        if not created:
            logger.info("Direct conversation %s already seeded", direct.id)
            return

        dialogue = [
            (ALICE, "Hi Bob! Did you get the report?"),
            (BOB, "Yes, reading it now."),
            (ALICE, "Great, ping me with questions."),
        ]
        for sender, content in dialogue:
            await message_service.append_message(direct.id, sender, content, None, uow)

        group = await conversation_service.create_group_conversation(
            ALICE, "Release planning", [BOB.user_id, CAROL.user_id], None, uow,
        )
        await message_service.append_message(
            group.id, CAROL, "Shall we freeze on Friday?", None, uow,
        )

        logger.info(
            "Seeded direct conversation %s and group %s", direct.id, group.id,
        )


def main() -> None:
    configure_logging()
    asyncio.run(seed())


if __name__ == "__main__":
    main()
