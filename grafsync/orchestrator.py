"""Startup sequencing and steady-state event dispatch."""

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

from grafsync.errors import GrafsyncError
from grafsync.events.source import EventSource
from grafsync.handlers.reconcile_handler import ReconcileHandler
from grafsync.logger.logger import get_logger
from grafsync.logger.types import Category, param
from grafsync.services.folders import FolderResolver
from grafsync.services.grafana import GrafanaClient

T = TypeVar("T")


class Orchestrator:
    """
    Runs grafsync.

    Startup order:
    1. the home page sequence starts as its own task; it can fail or take a
       minute without affecting anything else
    2. folders are synced to completion, so lookups during reconciliation
       see the fresh table
    3. the event source is consumed, one object at a time, until stopped
    """

    def __init__(
        self,
        client: GrafanaClient,
        folders: FolderResolver,
        handler: ReconcileHandler,
        source: EventSource,
        home_page: str | None = None,
    ) -> None:
        self.client = client
        self.folders = folders
        self.handler = handler
        self.source = source
        self.home_page = home_page
        self.logger = get_logger()
        self.home_page_task: asyncio.Task[None] | None = None

    def start_home_page(self) -> asyncio.Task[None] | None:
        if not self.home_page:
            return None
        self.home_page_task = asyncio.create_task(self._set_home_page(self.home_page))
        return self.home_page_task

    async def _set_home_page(self, slug: str) -> None:
        logger = self.logger.with_category(Category.HOMEPAGE)
        try:
            await self.client.set_home_page(slug)
        except GrafsyncError as e:
            logger.error(f"Can not set homepage to {slug}", e, param("slug", slug))
        except Exception as e:
            logger.error(f"Unexpected error setting homepage to {slug}", e)
        else:
            logger.info(f"Set homepage to {slug} success", param("slug", slug))

    async def sync_folders(self) -> bool:
        """Folder bootstrap; failure is logged and reconciliation proceeds with root folders."""
        try:
            await self.folders.sync()
        except GrafsyncError as e:
            self.logger.with_category(Category.FOLDERS).error(
                "Can not get folders",
                e,
                param("folders", self.folders.folder_names),
            )
            return False
        return True

    async def bootstrap(self) -> None:
        self.start_home_page()
        await self.sync_folders()

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Bootstrap, then consume events until stop_event is set.

        In-flight reconciliation finishes before this returns.

        Raises:
            Exception: whatever made the event source itself fail
        """
        completed, _ = await self._until_stopped(self.bootstrap(), stop_event)
        if not completed:
            self.logger.info("Stopped during bootstrap")
            return

        self.logger.info("Starting event consumer")
        consumer = asyncio.create_task(self.source.consume(self.handler.handle))
        waiter = asyncio.create_task(stop_event.wait())

        done, _ = await asyncio.wait({consumer, waiter}, return_when=asyncio.FIRST_COMPLETED)

        if consumer in done:
            waiter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await waiter
            # Re-raise a source failure; a clean return means the source ended
            consumer.result()
            return

        await self.source.stop()
        await consumer

    async def shutdown(self) -> None:
        """Cancel the home page task if it is still running."""
        task = self.home_page_task
        if task is not None and not task.done():
            self.logger.info("Cancelling unfinished home page task")
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    @staticmethod
    async def _until_stopped(
        coro: Awaitable[T], stop_event: asyncio.Event
    ) -> tuple[bool, T | None]:
        work = asyncio.ensure_future(coro)
        waiter = asyncio.create_task(stop_event.wait())
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)

        if work in done:
            waiter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await waiter
            return True, work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        return False, None
