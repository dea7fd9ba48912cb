"""Minimal interactive chat against the configured completion backend."""

import asyncio

from chat_core import ChatSession, create_backend


async def main() -> None:
    session = ChatSession(create_backend())
    while True:
        text = input("You: ")
        if not text.strip():
            break
        reply = await session.send(text)
        print("Model:", reply)


if __name__ == "__main__":
    asyncio.run(main())
