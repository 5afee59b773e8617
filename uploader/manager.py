from __future__ import annotations

import asyncio
import time
from typing import Any

import aiohttp
from telethon import TelegramClient, events
from telethon.tl.types import DocumentAttributeVideo
from yarl import URL

import config
import utils
from commands import Command, parse_command
from logger import chat_logger, log
from .buttons import build_buttons, parse_cancel_data
from .coordinator import CancelOutcome, ChatLease, coordinator
from .progress import ProgressReporter, progress_text
from .relay import StreamingRelay, validate_size
from .sink import TelegramSink
from .source import CancellableSource
from .state import (
    ByteCounter,
    CancelledTransfer,
    ChatBusy,
    PolicyViolation,
    TransferFailed,
    TransferState,
    TransferStatus,
    UserInputError,
)

BUSY_TEXT = "✋ Whoa, slow down! There's already an active upload in this chat."
UNAUTHORIZED_TEXT = "⚠️ You can't cancel another user's upload"
CANCELLED_TEXT = "⛔ Upload cancelled"
HELP_TEXT = (
    "📁 Hi! Need a file uploaded? Just send the link!\n"
    "In groups, use /upload <url>\n\n"
    "• Uploads files up to 2GB\n"
    "• Redirect-friendly\n"
    "• /status shows the upload running in this chat"
)

_session: aiohttp.ClientSession | None = None
_bot_username: str | None = None


def get_session() -> aiohttp.ClientSession:
    """Shared HTTP session; only connection setup is time limited.

    Bodies are relayed as sent so the byte count matches Content-Length.
    """
    global _session
    if _session is None or _session.closed:
        _session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(
                total=None,
                connect=config.CONNECT_TIMEOUT,
                sock_connect=config.CONNECT_TIMEOUT,
            ),
            headers={"User-Agent": config.USER_AGENT},
            auto_decompress=False,
        )
    return _session


async def close_session() -> None:
    global _session
    if _session is not None and not _session.closed:
        await _session.close()
    _session = None


async def _safe_edit(msg, text: str, buttons=None):
    try:
        await msg.edit(text, buttons=buttons)
    except Exception:  # noqa: BLE001
        log.debug("safe_edit failed for message update")


async def _safe_delete(msg):
    try:
        await msg.delete()
    except Exception:  # noqa: BLE001
        log.debug("safe_delete failed for status message")


async def _safe_respond(event, text: str, **kwargs):
    try:
        return await event.respond(text, reply_to=getattr(event, "id", None), **kwargs)
    except Exception:  # noqa: BLE001
        log.debug("respond failed in chat %s", getattr(event, "chat_id", None))
        return None


def parse_url(raw: str | None) -> URL:
    if not raw or not raw.strip():
        raise UserInputError("Please specify a URL")
    raw = raw.strip()
    try:
        url = URL(raw)
    except (ValueError, TypeError) as e:
        raise UserInputError(f"Invalid URL: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise UserInputError(f"Invalid URL: {raw}")
    return url


def _describe(exc: BaseException) -> str:
    text = str(exc) or type(exc).__name__
    return text[:200]


async def run_transfer(
    client: TelegramClient,
    event: Any,
    url: URL | str,
    *,
    session: Any | None = None,
    sink: Any | None = None,
) -> TransferStatus | None:
    """Relay ``url`` into the event's chat.

    Returns the terminal status, or None when another upload holds the chat.
    The chat lease is released on every path out of here.
    """
    chat_id = event.chat_id
    try:
        with coordinator.hold(chat_id, event.sender_id) as lease:
            return await _transfer(
                client,
                event,
                str(url),
                lease,
                session if session is not None else get_session(),
                sink if sink is not None else TelegramSink(client),
            )
    except ChatBusy:
        chat_logger(chat_id).info("Busy, rejecting request from %s", event.sender_id)
        await _safe_respond(event, BUSY_TEXT)
        return None


async def _transfer(client, event, url: str, lease: ChatLease, session, sink) -> TransferStatus:
    clog = chat_logger(lease.chat_id)
    clog.info("Downloading file from %s", url)
    try:
        async with session.get(url) as response:
            return await _relay_response(client, event, response, lease, sink)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        # Only the request itself gets here; relay errors are handled inside.
        clog.error("Fetching %s failed: %s", url, e)
        await _safe_respond(event, f"❌ Could not fetch the file: {_describe(e)}")
        return TransferStatus.FAILED


async def _relay_response(client, event, response, lease: ChatLease, sink) -> TransferStatus:
    clog = chat_logger(lease.chat_id)
    headers = response.headers
    total = utils.content_length(headers)
    name = utils.filename_from_headers(headers, response.url)
    video = utils.is_video(headers.get("Content-Type"), name)
    state = TransferState(name, ByteCounter(total))
    lease.state = state
    clog.info("File %s (%d bytes, video: %s)", name, total, video)

    if not 200 <= response.status < 300:
        state.finish(TransferStatus.FAILED)
        clog.error("Origin answered HTTP %s for %s", response.status, name)
        await _safe_respond(event, f"❌ Upload failed: HTTP {response.status} {response.reason or ''}".rstrip())
        return TransferStatus.FAILED
    try:
        validate_size(total)
    except PolicyViolation as e:
        state.finish(TransferStatus.REJECTED)
        clog.info("Rejected %s: %s", name, e)
        await _safe_respond(event, e.notice)
        return TransferStatus.REJECTED
    if lease.cancel.fired:
        state.finish(TransferStatus.CANCELLED)
        await _safe_respond(event, CANCELLED_TEXT)
        return TransferStatus.CANCELLED

    msg = await event.respond(
        f"🚀 Starting upload of {name}...",
        buttons=build_buttons(lease),
        reply_to=getattr(event, "id", None),
    )

    async def render(snap):
        await msg.edit(progress_text(name, snap), buttons=build_buttons(lease))

    relay = StreamingRelay(CancellableSource.from_response(response, lease.cancel), sink.open(total, name), state)
    reporter = ProgressReporter(state, render)
    started = time.monotonic()
    handle = None
    failure: TransferFailed | None = None
    reporter.start()
    try:
        handle = await relay.run()
    except CancelledTransfer:
        pass
    except TransferFailed as e:
        failure = e
    finally:
        await reporter.stop()
        # No-op unless the relay was interrupted from outside.
        state.finish(TransferStatus.FAILED)
    elapsed = time.monotonic() - started

    async with state.lock:
        if state.status is TransferStatus.CANCELLED:
            clog.info("Cancelled %s after %s", name, utils.humanize_size(state.counter.transferred))
            await _safe_edit(msg, CANCELLED_TEXT)
            return TransferStatus.CANCELLED
        if state.status is TransferStatus.FAILED:
            reason = _describe(failure) if failure else "interrupted"
            clog.error("Upload of %s failed: %s", name, reason)
            await _safe_edit(msg, f"❌ Upload failed: {reason}")
            return TransferStatus.FAILED
        clog.info("Uploaded file %s (%d bytes) in %.2fs", name, total, elapsed)
        try:
            await _send_document(client, event, handle, elapsed, video)
        except Exception as e:  # noqa: BLE001
            clog.error("Sending %s failed: %s", name, e)
            await _safe_edit(msg, f"❌ Upload failed: {_describe(e)}")
            return TransferStatus.FAILED
        await _safe_delete(msg)
        return TransferStatus.COMPLETED


async def _send_document(client, event, handle, elapsed: float, video: bool):
    attributes = None
    if video:
        attributes = [DocumentAttributeVideo(0, 0, 0, supports_streaming=False)]
    return await client.send_file(
        event.chat_id,
        handle,
        caption=f"Uploaded in **{elapsed:.2f} secs**",
        reply_to=getattr(event, "id", None),
        attributes=attributes,
        force_document=not video,
    )


async def handle_cancel(event) -> CancelOutcome:
    token = parse_cancel_data(event.data)
    if token is None:
        await event.answer("Not available", alert=False)
        return CancelOutcome.NOT_FOUND
    outcome = coordinator.cancel(event.chat_id, event.sender_id, token)
    if outcome is CancelOutcome.UNAUTHORIZED:
        await event.answer(UNAUTHORIZED_TEXT, alert=True, cache_time=0)
    elif outcome is CancelOutcome.NOT_FOUND:
        await event.answer("Not available", alert=False)
    else:
        await event.answer("Cancelling")
    return outcome


def status_text(chat_id: int) -> str:
    lease = coordinator.get(chat_id)
    if lease is None:
        return "No active upload in this chat."
    state = lease.state
    if state is None or not state.streaming:
        return "🔎 Preparing upload..."
    return progress_text(state.name, state.snapshot())


async def _authorized(event) -> bool:
    sender = await event.get_sender()
    return config.is_user_allowed(getattr(sender, "id", None), getattr(sender, "username", None))


async def _get_bot_username(client) -> str:
    global _bot_username
    if _bot_username is None:
        me = await client.get_me()
        _bot_username = getattr(me, "username", None) or ""
    return _bot_username


async def _on_start(client, event, cmd: Command):
    await event.respond(HELP_TEXT)


async def _on_upload(client, event, cmd: Command):
    try:
        url = parse_url(cmd.arg)
    except UserInputError as e:
        await _safe_respond(event, str(e))
        return
    await run_transfer(client, event, url)


async def _on_status(client, event, cmd: Command):
    await _safe_respond(event, status_text(event.chat_id))


_COMMANDS = {
    "start": _on_start,
    "upload": _on_upload,
    "status": _on_status,
}


async def handle_message(client, event) -> None:
    """Route a private or group message to a command or a bare-URL upload."""
    if event.sender_id is None:
        return
    text = (event.raw_text or "").strip()
    cmd = parse_command(text)
    if cmd is not None:
        if not cmd.addressed_to(await _get_bot_username(client)):
            log.warning("Ignoring command for unknown bot: %s", cmd.via)
            return
        # Other bots in a group may answer /start too; only react when addressed.
        if event.is_group and cmd.name == "start" and cmd.via is None:
            return
        handler = _COMMANDS.get(cmd.name)
        if handler is not None:
            log.info("Received command %s in chat %s", cmd, event.chat_id)
            if not await _authorized(event):
                await _safe_respond(event, "🛑 You are not authorized to use this bot.")
                return
            await handler(client, event, cmd)
            return
    if event.is_private and text:
        try:
            url = parse_url(text)
        except UserInputError:
            return
        if not await _authorized(event):
            await _safe_respond(event, "🛑 You are not authorized to use this bot.")
            return
        await run_transfer(client, event, url)


def register_handlers(client: TelegramClient):
    @client.on(events.NewMessage(incoming=True, func=lambda e: e.is_private or e.is_group))
    async def _message(event):  # noqa: D401
        try:
            await handle_message(client, event)
        except Exception as e:  # noqa: BLE001
            log.error("Error handling message in chat %s: %s", event.chat_id, e)

    @client.on(events.CallbackQuery(pattern=b"cancel:"))
    async def _cancel(event):  # noqa: D401
        try:
            await handle_cancel(event)
        except Exception as e:  # noqa: BLE001
            log.error("Error handling cancel in chat %s: %s", event.chat_id, e)

    log.debug("Handlers registered")


async def register_bot_commands(client: TelegramClient):
    from telethon.tl.functions.bots import SetBotCommandsRequest
    from telethon.tl.types import BotCommand, BotCommandScopeDefault

    commands = [
        BotCommand("start", "Help / usage"),
        BotCommand("upload", "Upload a file from a URL"),
        BotCommand("status", "Show the upload running in this chat"),
    ]
    try:
        await client(SetBotCommandsRequest(scope=BotCommandScopeDefault(), lang_code="", commands=commands))
    except Exception as e:  # noqa: BLE001
        log.warning("Registering bot commands failed: %s", e)


async def shutdown(timeout: float = 5.0) -> int:
    """Cancel every running upload, wait for leases to drain, close HTTP."""
    fired = coordinator.cancel_all()
    if fired:
        log.info("Cancelling %d active upload(s)", fired)
    deadline = time.monotonic() + timeout
    while len(coordinator) and time.monotonic() < deadline:
        await asyncio.sleep(0.1)
    await close_session()
    return fired


__all__ = [
    "run_transfer",
    "handle_message",
    "handle_cancel",
    "register_handlers",
    "register_bot_commands",
    "parse_url",
    "status_text",
    "shutdown",
    "get_session",
    "close_session",
]
