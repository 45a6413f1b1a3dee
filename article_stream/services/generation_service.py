import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterable, AsyncIterator, Callable, List, Optional

import aiohttp

from article_stream.core.config import Settings, get_settings
from article_stream.core.exceptions import BackendReportedError, ProtocolError, TransportError
from article_stream.schemas.generation import GenerationConfig
from article_stream.schemas.session import (
    Cancelled,
    Failed,
    Reset,
    SessionUpdate,
    Started,
    StreamSession,
)
from article_stream.services.framing import iter_frames
from article_stream.services.router import decode_envelope, route_envelope
from article_stream.services.session import reduce

logger = logging.getLogger(__name__)

Observer = Callable[[StreamSession], None]


class GenerationController:
    """
    Runs one generation request at a time and owns its StreamSession.

    Frames are processed strictly in arrival order by a single read loop;
    every processed frame produces exactly one new session snapshot, which
    is pushed to subscribers and yielded from stream_generation().
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings or get_settings()
        self.session = StreamSession(ui_language=self.settings.DEFAULT_UI_LANGUAGE)
        self._http = http
        self._observers: List[Observer] = []
        self._cancel = asyncio.Event()
        self._response: Optional[aiohttp.ClientResponse] = None
        self._last_config: Optional[GenerationConfig] = None

    # Observers

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _apply(self, update: SessionUpdate) -> StreamSession:
        self.session = reduce(self.session, update)
        for observer in list(self._observers):
            try:
                observer(self.session)
            except Exception as e:
                logger.error(f"Session observer failed: {e}", exc_info=True)
        return self.session

    # Lifecycle

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Abandon the in-flight generation. The loop stops at the next chunk."""
        logger.info("Cancelling generation")
        self._cancel.set()
        if self._response is not None:
            self._response.close()

    def reset(self) -> StreamSession:
        self.cancel()
        return self._apply(Reset())

    async def retry(self) -> StreamSession:
        if self._last_config is None:
            raise RuntimeError("Nothing to retry: no generation has been started")
        return await self.start_generation(self._last_config)

    # Frame processing

    def _process_frame(self, payload: str) -> Optional[SessionUpdate]:
        try:
            envelope = decode_envelope(payload)
            return route_envelope(envelope, max_depth=self.settings.MAX_NORMALIZE_DEPTH)
        except ProtocolError as e:
            logger.warning(f"Skipping frame: {e}")
            return None
        except BackendReportedError as e:
            logger.error(f"Backend reported error: {e}")
            return Failed(message=str(e))

    async def consume(self, chunks: AsyncIterable[bytes]) -> AsyncGenerator[StreamSession, None]:
        """Process a raw byte-chunk stream against the current session."""
        async for payload in iter_frames(chunks, self.settings.EVENT_PREFIX):
            if self.cancelled:
                break
            update = self._process_frame(payload)
            if update is None:
                continue
            yield self._apply(update)

        if self.cancelled:
            # a reset already replaced the session; nothing left to cancel
            if self.session.started and not self.session.cancelled:
                yield self._apply(Cancelled())
        elif self.session.is_generating:
            logger.warning("Stream ended before a terminal frame")
            yield self._apply(Failed(message="Connection Error: stream ended before the article was completed"))

    # Transport

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.settings.GENERATION_TIMEOUT_SECONDS,
            sock_connect=self.settings.REQUEST_TIMEOUT_SECONDS,
            sock_read=self.settings.REQUEST_TIMEOUT_SECONDS,
        )

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._http is not None:
            yield self._http
            return
        async with aiohttp.ClientSession() as http:
            yield http

    async def _read_chunks(self, response: aiohttp.ClientResponse) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in response.content.iter_any():
                if self.cancelled:
                    return
                yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            if self.cancelled:
                return
            raise TransportError(str(e) or e.__class__.__name__) from e

    @asynccontextmanager
    async def _open_stream(self, config: GenerationConfig) -> AsyncIterator[AsyncGenerator[bytes, None]]:
        url = self.settings.generation_url
        logger.info(f"Starting generation for keyword={config.keyword!r} at {url}")
        async with self._client() as http:
            try:
                response = await http.post(url, json=config.to_request_body(), timeout=self._timeout())
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise TransportError(str(e) or e.__class__.__name__) from e

            self._response = response
            try:
                if response.status >= 400:
                    raise TransportError(f"Failed to start generation (HTTP {response.status})", response.status)
                yield self._read_chunks(response)
            finally:
                self._response = None
                response.release()

    async def stream_generation(self, config: GenerationConfig) -> AsyncGenerator[StreamSession, None]:
        """
        Start a fresh session for `config` and yield one snapshot per
        processed frame. Transport failures end the session with an error
        event; nothing is retried.
        """
        self._last_config = config
        self._cancel = asyncio.Event()
        yield self._apply(Started(ui_language=config.ui_language))

        try:
            async with self._open_stream(config) as chunks:
                async for snapshot in self.consume(chunks):
                    yield snapshot
        except TransportError as e:
            logger.error(f"Generation transport error: {e}")
            yield self._apply(Failed(message=f"Connection Error: {e}"))

    async def start_generation(self, config: GenerationConfig) -> StreamSession:
        async for _ in self.stream_generation(config):
            pass
        return self.session


class GenerationService:
    """App-wide holder of settings and the shared HTTP client."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._http: Optional[aiohttp.ClientSession] = None

    async def startup(self) -> None:
        if self._http is None:
            self._http = aiohttp.ClientSession()
            logger.info("Generation HTTP client created")

    async def shutdown(self) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None
            logger.info("Generation HTTP client closed")

    def create_controller(self) -> GenerationController:
        return GenerationController(settings=self.settings, http=self._http)
