"""RenderSession: one streaming render attempt under a hard deadline.

State machine::

    INITIALIZING --init ok--> STREAMING --ready------> RESOLVED
         |                        |------shell error--> ERRORED
         +--translation error--> ERRORED
                                  +------deadline-----> ABORTED

The renderer runs in a producer task that pushes encoded chunks onto a
queue.  The response is settled exactly once through ``self._response``:
either with a StreamingResponse (ready) or with a RenderError (shell
error / deadline before ready).  Chunk errors only set the sticky
``had_error`` flag, which decides the status code at resolution time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Mapping

from starlette.responses import StreamingResponse

from ..i18n.localizer import Localizer
from ..types import (
    ChunkError,
    RenderAborted,
    RenderContext,
    RenderShellError,
    RenderStrategy,
    SessionState,
    TranslationLoadError,
    ViewRenderer,
)

logger = logging.getLogger(__name__)

ABORT_DELAY = 5.0
HTML_CONTENT_TYPE = "text/html"

_EOF = object()


class RenderSession:
    """Drives one page render and produces exactly one outcome."""

    def __init__(
        self,
        *,
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
        abort_delay: float = ABORT_DELAY,
        strategy: RenderStrategy = RenderStrategy.ALL_READY,
        queue_size: int = 16,
    ) -> None:
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.abort_delay = abort_delay
        self.strategy = RenderStrategy(strategy)
        # Only shell_ready streams while producing; all_ready must buffer everything.
        self._queue_limit = queue_size if self.strategy == RenderStrategy.SHELL_READY else None

        self.state = SessionState.INITIALIZING
        self.had_error = False
        self.errors: list[BaseException] = []
        self.deadline_fired = False

        self._queue: asyncio.Queue = asyncio.Queue()
        self._response: asyncio.Future | None = None
        self._producer: asyncio.Task | None = None
        self._deadline: asyncio.TimerHandle | None = None
        self._shell_flushed = False
        self._started_at = 0.0

    # ------------------------------------------------------------------
    # Initializing
    # ------------------------------------------------------------------

    async def initialize(self, localizer: Localizer) -> Localizer:
        """Load the request's translations; a load failure is a shell error."""
        try:
            return await localizer.init()
        except TranslationLoadError as e:
            self.state = SessionState.ERRORED
            logger.error("Render shell error (translations): %s", e)
            raise RenderShellError(str(e)) from e

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def run(self, renderer: ViewRenderer, context: RenderContext) -> StreamingResponse:
        """Start the render and wait for its first outcome.

        Returns the materialized response on ready; raises RenderShellError
        or RenderAborted when nothing can be sent.
        """
        loop = asyncio.get_running_loop()
        self._response = loop.create_future()
        self._started_at = time.monotonic()
        self.state = SessionState.STREAMING
        self._producer = asyncio.create_task(self._produce(renderer, context))
        self._deadline = loop.call_later(self.abort_delay, self._on_deadline)
        try:
            return await self._response
        except asyncio.CancelledError:
            # Caller went away before the response existed.
            self.abort()
            self._cancel_deadline()
            raise

    async def _produce(self, renderer: ViewRenderer, context: RenderContext) -> None:
        stream: AsyncIterator | None = None
        try:
            stream = renderer(context)
            async for item in stream:
                if isinstance(item, ChunkError):
                    self.on_error(item.error)
                    continue
                data = item.encode("utf-8") if isinstance(item, str) else bytes(item)
                if not data:
                    continue
                self._queue.put_nowait(data)
                if not self._shell_flushed:
                    self._shell_flushed = True
                    if self.strategy == RenderStrategy.SHELL_READY:
                        self._resolve()
                if self._queue_limit is not None and self._queue.qsize() >= self._queue_limit:
                    await self._queue.join()
        except asyncio.CancelledError:
            if self._reject(RenderAborted(
                f"Render aborted after {self.abort_delay}s with no output ready"
            ), SessionState.ABORTED):
                logger.warning("Render aborted before ready (%s)", context.url)
            elif self.deadline_fired:
                logger.warning("Render stream cut off by deadline (%s)", context.url)
            raise
        except Exception as e:
            if self._shell_flushed:
                # Output already exists; keep it and degrade the status.
                self.on_error(e)
            else:
                shell_error = RenderShellError(str(e) or type(e).__name__)
                shell_error.__cause__ = e
                if self._reject(shell_error, SessionState.ERRORED):
                    logger.error("Render shell error (%s): %s", context.url, e, exc_info=e)
                return
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    logger.debug("Renderer close failed: %s", e)
            self._queue.put_nowait(_EOF)

        # Whole render buffered (or stream finished after the shell).
        self._resolve()

    def on_error(self, error: BaseException) -> None:
        """Per-chunk error: sticky flag, logged, never aborts the stream."""
        self.had_error = True
        self.errors.append(error)
        logger.error("Render error: %s", error, exc_info=error)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _resolve(self) -> bool:
        if self._response is None or self._response.done():
            return False
        self.state = SessionState.RESOLVED
        status = 500 if self.had_error else self.status_code
        headers = {k: v for k, v in self.headers.items() if k.lower() != "content-type"}
        headers["content-type"] = HTML_CONTENT_TYPE
        self._response.set_result(
            StreamingResponse(self._body(), status_code=status, headers=headers)
        )
        logger.info(
            "Render resolved status=%d in %.1fms",
            status, (time.monotonic() - self._started_at) * 1000,
        )
        return True

    def _reject(self, error: Exception, state: SessionState) -> bool:
        if self._response is None or self._response.done():
            return False
        self.state = state
        self._cancel_deadline()
        self._response.set_exception(error)
        return True

    async def _body(self) -> AsyncIterator[bytes]:
        try:
            while True:
                item = await self._queue.get()
                self._queue.task_done()
                if item is _EOF:
                    break
                yield item
        finally:
            # Fully sent or client gone: stop producing, drop the timer.
            self.abort()
            self._cancel_deadline()

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def _on_deadline(self) -> None:
        self.deadline_fired = True
        self.abort()

    def abort(self) -> None:
        """Stop the renderer.  Safe to call in any state, any number of times."""
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()

    def _cancel_deadline(self) -> None:
        if self._deadline is not None:
            self._deadline.cancel()
            self._deadline = None
