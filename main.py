from __future__ import annotations

import asyncio
import signal

from telethon import TelegramClient

import config
from logger import log
from uploader import manager


def main() -> None:
    asyncio.run(_main())


async def _main():
    client, shutdown_event = await _setup_client()
    loop = asyncio.get_running_loop()

    async def shutdown():
        await _graceful_shutdown(client, shutdown_event)

    _install_signal_handlers(loop, shutdown)
    try:
        await client.run_until_disconnected()
    finally:
        if not shutdown_event.is_set():
            await shutdown()


async def _setup_client():
    config.validate()
    client = TelegramClient(config.SESSION_NAME, config.API_ID, config.API_HASH)
    manager.register_handlers(client)
    await client.start(bot_token=config.BOT_TOKEN)
    await manager.register_bot_commands(client)
    me = await client.get_me()
    log.info("Bot running as @%s – send a link in a private chat or /upload <url> in a group.",
             getattr(me, "username", "?"))
    return client, asyncio.Event()


async def _graceful_shutdown(client, shutdown_event: asyncio.Event):
    if shutdown_event.is_set():
        return
    log.info("Shutting down gracefully...")
    shutdown_event.set()
    try:
        await manager.shutdown(timeout=6)
    except Exception as e:  # noqa: BLE001
        log.warning("Shutdown cleanup failed: %s", e)
    await client.disconnect()


def _install_signal_handlers(loop, shutdown_coro):
    def trigger():  # noqa: D401
        loop.create_task(shutdown_coro())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, trigger)
        except NotImplementedError:  # pragma: no cover
            signal.signal(sig, lambda *_: loop.create_task(shutdown_coro()))


if __name__ == "__main__":  # pragma: no cover
    main()
