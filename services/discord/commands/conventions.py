"""
Convention Command Handler

Transport-agnostic implementation of the convention commands and of the
numbered follow-up selection. The registration layer
(convention_commands.py) adapts discord.py objects into a ChatSession and
delegates here.
"""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, Set

from core.orchestrator import QueryOrchestrator
from core.selection import SelectionCache, SelectionOutcomeKind
from services.discord.logging import CommandLogAdapter
from services.discord.session import ChatSession
from services.render.pipeline import (
    ConventionRenderer,
    CoverSource,
    RenderedImage,
    sniff_image_mime,
)
from shared.config.conventions import ConventionConfig
from shared.conventions.records import EventRecord, format_detail_text
from shared.logging.logger import get_logger
from shared.storage.subscriptions import SubscriptionStore

log = get_logger("discord.commands.conventions", runtime="discord")

CONFIRM_TIMEOUT_SECONDS = 10.0
CONFIRM_YES = "是"

MSG_QUERY_USAGE = "请提供查询关键词，例如：漫展 查询 南京"
MSG_IMAGE_QUERY_USAGE = "请提供查询关键词，例如：漫展 图片查询 南京"
MSG_SUBSCRIBE_USAGE = "请提供订阅关键词，例如：漫展 订阅 南京"
MSG_NOT_FOUND = "未找到相关漫展信息。"
MSG_QUERY_FAILED = "查询失败，请稍后重试。"
MSG_PICK_HINT = "请输入序号查看详情，输入“0”取消。"
MSG_TIMEOUT = "超时未选择，请重新查询。"
MSG_CANCELED = "已取消操作。"
MSG_INVALID = "无效选择，请输入正确的序号。"
MSG_RENDER_UNAVAILABLE = "图片渲染功能需要无头浏览器服务，请联系管理员启用。"
MSG_RENDERING = "✨ 正在查询并渲染图片，请稍候..."
MSG_NO_SUBSCRIPTIONS = "你没有订阅任何漫展。"
MSG_SUBSCRIPTIONS_EMPTY = "未找到订阅的漫展信息。"
MSG_CONFIRM_CLEAR = "确定取消所有订阅？（是/否）"
MSG_CLEARED = "已取消所有订阅。"
MSG_ABORTED = "操作取消。"


class ConventionCommandHandler:
    def __init__(
        self,
        *,
        config: ConventionConfig,
        orchestrator: QueryOrchestrator,
        subscriptions: SubscriptionStore,
        selections: SelectionCache,
        renderer: ConventionRenderer,
        covers: CoverSource,
        logger: Optional[CommandLogAdapter] = None,
    ):
        self._config = config
        self._orchestrator = orchestrator
        self._subscriptions = subscriptions
        self._selections = selections
        self._renderer = renderer
        self._covers = covers
        self._logger = logger or CommandLogAdapter()
        # users answering a confirmation prompt; their replies skip selection
        self._awaiting_reply: Set[str] = set()

    @property
    def quote(self) -> bool:
        return self._config.add_quote

    # --------------------------------------------------
    # TEXT QUERIES
    # --------------------------------------------------

    async def cmd_query(self, session: ChatSession, keyword: Optional[str]) -> None:
        keyword = (keyword or "").strip()
        if not keyword:
            await session.send_text(MSG_QUERY_USAGE)
            return

        self._selections.discard(session.user_id)

        try:
            records = await self._orchestrator.query(keyword)
        except Exception as e:
            log.error(f"Search API call failed for {keyword!r}: {e}")
            self._log(session, "query", False, keyword=keyword)
            await session.send_text(MSG_QUERY_FAILED)
            return

        if not records:
            self._log(session, "query", True, keyword=keyword, results=0)
            await session.send_text(MSG_NOT_FOUND)
            return

        lines = "\n".join(
            f"[{i}]\t {r.name} - {r.address}" for i, r in enumerate(records, start=1)
        )
        await self._offer_listing(
            session,
            "query",
            records,
            f"找到以下漫展信息：\n{lines}\n{MSG_PICK_HINT}",
            keyword=keyword,
        )

    async def cmd_batch_query(self, session: ChatSession) -> None:
        self._selections.discard(session.user_id)

        result = await self._orchestrator.query_subscriptions(
            user_id=session.user_id, channel_id=session.channel_key
        )
        if not result.has_subscriptions:
            await session.send_text(MSG_NO_SUBSCRIPTIONS)
            return

        if not result.records:
            self._log(session, "batch_query", True, keywords=len(result.keywords), results=0)
            await session.send_text(MSG_SUBSCRIPTIONS_EMPTY)
            return

        lines = "\n".join(
            f"{i}. [{r.keyword}] {r.name} - {r.address}"
            for i, r in enumerate(result.records, start=1)
        )
        await self._offer_listing(
            session,
            "batch_query",
            result.records,
            f"订阅关键词的漫展信息：\n{lines}\n{MSG_PICK_HINT}",
            keywords=len(result.keywords),
        )

    # --------------------------------------------------
    # IMAGE QUERIES
    # --------------------------------------------------

    async def cmd_image_query(self, session: ChatSession, keyword: Optional[str]) -> None:
        keyword = (keyword or "").strip()
        if not keyword:
            await session.send_text(MSG_IMAGE_QUERY_USAGE)
            return

        if not self._renderer.available:
            await session.send_text(MSG_RENDER_UNAVAILABLE)
            return

        self._selections.discard(session.user_id)

        async def _lookup() -> Optional[List[EventRecord]]:
            records = await self._orchestrator.query(keyword)
            if not records:
                await session.send_text(MSG_NOT_FOUND)
                return None
            return records

        await self._render_and_offer(
            session,
            command="image_query",
            title=f"漫展查询：{keyword}",
            notice=MSG_RENDERING,
            lookup=_lookup,
        )

    async def cmd_image_batch_query(self, session: ChatSession) -> None:
        if not self._renderer.available:
            await session.send_text(MSG_RENDER_UNAVAILABLE)
            return

        subs = self._subscriptions.list(
            user_id=session.user_id, channel_id=session.channel_key
        )
        if not subs:
            await session.send_text(MSG_NO_SUBSCRIPTIONS)
            return

        self._selections.discard(session.user_id)

        async def _lookup() -> Optional[List[EventRecord]]:
            result = await self._orchestrator.query_subscriptions(
                user_id=session.user_id, channel_id=session.channel_key
            )
            if not result.records:
                await session.send_text(MSG_SUBSCRIPTIONS_EMPTY)
                return None
            return result.records

        await self._render_and_offer(
            session,
            command="image_batch_query",
            title="订阅漫展一键查询",
            notice=f"✨ 正在查询 {len(subs)} 个订阅并渲染图片，请稍候...",
            lookup=_lookup,
        )

    async def _render_and_offer(
        self,
        session: ChatSession,
        *,
        command: str,
        title: str,
        notice: str,
        lookup: Callable[[], Awaitable[Optional[List[EventRecord]]]],
    ) -> None:
        notice_id = await session.send_text(notice, quote=self.quote)
        try:
            records = await lookup()
            if not records:
                self._log(session, command, True, results=0)
                return

            image = await self._renderer.render_list(title, records)
            await self._send_rendered(session, image, caption=MSG_PICK_HINT)

            # Armed only once the list image is delivered
            self._start_selection(session, records, image_mode=True)
            self._log(session, command, True, results=len(records))
        except Exception as e:
            log.error(f"{command} failed: {e}")
            self._log(session, command, False)
            await self._ignore_failure(
                "report failed query", session.send_text(MSG_QUERY_FAILED)
            )
        finally:
            if notice_id:
                await self._ignore_failure(
                    "delete wait notice", session.delete_message(notice_id)
                )

    # --------------------------------------------------
    # SUBSCRIPTIONS
    # --------------------------------------------------

    async def cmd_subscribe(self, session: ChatSession, keyword: Optional[str]) -> None:
        keyword = (keyword or "").strip()
        if not keyword:
            await session.send_text(MSG_SUBSCRIBE_USAGE)
            return

        self._subscriptions.upsert(
            user_id=session.user_id,
            channel_id=session.channel_key,
            keyword=keyword,
        )
        self._log(session, "subscribe", True, keyword=keyword)
        await session.send_text(f"已订阅「{keyword}」的漫展信息。")

    async def cmd_unsubscribe(self, session: ChatSession, keyword: Optional[str] = None) -> None:
        keyword = (keyword or "").strip()

        if not keyword:
            await session.send_text(MSG_CONFIRM_CLEAR)
            self._awaiting_reply.add(session.user_id)
            try:
                reply = await session.prompt(CONFIRM_TIMEOUT_SECONDS)
            finally:
                self._awaiting_reply.discard(session.user_id)
            if reply is not None and reply.strip().lower() == CONFIRM_YES:
                removed = self._subscriptions.remove(
                    user_id=session.user_id, channel_id=session.channel_key
                )
                self._log(session, "unsubscribe_all", True, removed=removed)
                await session.send_text(MSG_CLEARED)
                return
            await session.send_text(MSG_ABORTED)
            return

        removed = self._subscriptions.remove(
            user_id=session.user_id,
            channel_id=session.channel_key,
            keyword=keyword,
        )
        self._log(session, "unsubscribe", True, keyword=keyword, removed=removed)
        if removed:
            await session.send_text(f"已取消订阅「{keyword}」。")
        else:
            await session.send_text(f"未找到「{keyword}」的订阅。")

    async def cmd_list_subscriptions(self, session: ChatSession) -> None:
        subs = self._subscriptions.list(
            user_id=session.user_id, channel_id=session.channel_key
        )
        if not subs:
            await session.send_text(MSG_NO_SUBSCRIPTIONS)
            return

        lines = "\n".join(f"- {s.keyword}" for s in subs)
        await session.send_text(f"你订阅的漫展关键词：\n{lines}")

    # --------------------------------------------------
    # FOLLOW-UP SELECTION
    # --------------------------------------------------

    def has_pending_selection(self, user_id: str) -> bool:
        return self._selections.has_pending(user_id)

    def is_awaiting_reply(self, user_id: str) -> bool:
        return user_id in self._awaiting_reply

    async def handle_followup(self, session: ChatSession, text: Optional[str]) -> bool:
        """
        Route a plain message to the pending selection, if any.

        Returns False when the user has nothing pending so the caller can
        continue with normal command processing.
        """
        outcome = self._selections.resolve(session.user_id, text)

        if outcome.kind is SelectionOutcomeKind.PASSTHROUGH:
            return False

        if outcome.kind is SelectionOutcomeKind.CANCELED:
            await session.send_text(MSG_CANCELED)
            return True

        if outcome.kind is SelectionOutcomeKind.INVALID:
            await session.send_text(MSG_INVALID)
            return True

        await self._send_detail(session, outcome.record, image_mode=outcome.image_mode)
        self._log(session, "select", True, name=outcome.record.name)
        return True

    async def _send_detail(self, session: ChatSession, record: EventRecord, *, image_mode: bool) -> None:
        if image_mode and self._renderer.available:
            try:
                image = await self._renderer.render_detail(record)
            except Exception as e:
                log.error(f"Detail image render failed, falling back to text: {e}")
                await session.send_text(format_detail_text(record))
                return
            await self._send_rendered(session, image)
            return

        text = format_detail_text(record)
        cover = await self._covers.fetch_cover(record.cover_url)
        if not cover:
            await session.send_text(text)
            return

        ext = sniff_image_mime(cover).split("/", 1)[1]
        await session.send_image(
            cover, filename=f"cover.{ext}", caption=text, quote=self.quote
        )

    # --------------------------------------------------
    # Internal helpers
    # --------------------------------------------------

    async def _offer_listing(
        self,
        session: ChatSession,
        command: str,
        records: List[EventRecord],
        text: str,
        **extra,
    ) -> None:
        try:
            await session.send_text(text, quote=self.quote)
        except Exception as e:
            log.error(f"{command} listing could not be delivered: {e}")
            self._log(session, command, False, **extra)
            await self._ignore_failure(
                "report failed listing", session.send_text(MSG_QUERY_FAILED)
            )
            return

        self._start_selection(session, records, image_mode=False)
        self._log(session, command, True, results=len(records), **extra)

    def _start_selection(
        self, session: ChatSession, records: List[EventRecord], *, image_mode: bool
    ) -> None:
        self._selections.start(
            session.user_id,
            records,
            image_mode=image_mode,
            on_expire=lambda: session.send_text(MSG_TIMEOUT),
        )

    async def _send_rendered(
        self, session: ChatSession, image: RenderedImage, *, caption: str = ""
    ) -> None:
        await session.send_image(
            image.to_bytes(),
            filename=image.filename,
            caption=caption,
            quote=self.quote,
        )

    @staticmethod
    async def _ignore_failure(what: str, action: Awaitable[None]) -> None:
        """Run a cosmetic side effect; its failure never reaches the caller."""
        try:
            await action
        except Exception as e:
            log.debug(f"Best-effort '{what}' failed and was ignored: {e}")

    def _log(self, session: ChatSession, command: str, success: bool, **extra) -> None:
        self._logger.log_command(
            command=command,
            user_id=session.user_id,
            channel_id=session.channel_key,
            success=success,
            extra=extra,
        )
