"""Tests for the generation controller: read loop, observers, cancellation, transport."""

import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from article_stream.core.config import Settings
from article_stream.schemas.generation import GenerationConfig
from article_stream.schemas.stream import AgentId, EventKind, Stage
from article_stream.services.generation_service import GenerationController, GenerationService
from article_stream.services.session import start_session

DONE = {
    "type": "done",
    "data": {
        "title": "Cold Brew Basics",
        "article_body": '```json\n{"content": "# Cold Brew\\n\\nSteep for 18 hours.", "seo_meta": {"title": "Cold Brew"}}\n```',
        "images": [{"url": "https://img.test/1.png", "prompt": "jar", "placement": "header"}],
    },
}


def _controller(settings: Settings) -> GenerationController:
    controller = GenerationController(settings=settings)
    controller.session = start_session("en")
    return controller


@asynccontextmanager
async def _backend(
    frames: list[bytes], status: int = 200, received: list | None = None, drop: bool = False
):
    """
    Serve `frames` from the generation path of a local aiohttp server.
    With `drop`, the connection is closed mid-body after the frames.
    """

    async def handler(request: web.Request) -> web.StreamResponse:
        if received is not None:
            received.append(await request.json())
        if status >= 400:
            return web.json_response({"error": "boom"}, status=status)
        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        if drop:
            # promise more body than is ever sent
            response.content_length = 1 << 20
        await response.prepare(request)
        for frame in frames:
            await response.write(frame)
        if drop:
            await asyncio.sleep(0.2)
            request.transport.close()
            return response
        await response.write_eof()
        return response

    app = web.Application()
    app.router.add_post("/api/visual-article", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield Settings(BACKEND_BASE_URL=f"http://{server.host}:{server.port}")
    finally:
        await server.close()


class TestConsume:
    """Tests for the frame loop against in-memory chunk streams."""

    @pytest.mark.asyncio
    async def test_full_generation(self, settings, sse, chunked, agent_event) -> None:
        body = b"".join(
            [
                sse(agent_event("researcher", "Searching")),
                sse(agent_event("strategist", "Outlining")),
                sse(agent_event("writer", "Drafting")),
                sse(agent_event("artist", "Painting")),
                sse(DONE),
            ]
        )
        controller = _controller(settings)
        snapshots = [s async for s in controller.consume(chunked(body, 11))]

        assert len(snapshots) == 5
        assert [s.progress for s in snapshots] == [20, 40, 60, 80, 100]
        final = snapshots[-1]
        assert final.stage == Stage.COMPLETE
        assert final.is_generating is False
        assert final.presentation == "preview"
        assert final.final_article.title == "Cold Brew Basics"
        assert final.final_article.content == "# Cold Brew\n\nSteep for 18 hours."
        assert final.final_article.seo_meta.title == "Cold Brew"
        assert len(final.final_article.images) == 1
        trackers = [e for e in final.events if e.agent_id == AgentId.TRACKER]
        assert len(final.events) == 7
        assert len(trackers) == 3

    @pytest.mark.asyncio
    async def test_fenced_article_body_end_to_end(self, settings, sse, chunked, agent_event) -> None:
        done = {
            "type": "done",
            "data": {"article_body": '```json\n{"content":"Final text","seo_meta":{"title":"T"}}\n```'},
        }
        body = sse(agent_event("researcher")) + sse(agent_event("writer")) + sse(done)
        controller = _controller(settings)
        snapshots = [s async for s in controller.consume(chunked(body, 1))]

        final = snapshots[-1]
        assert final.stage == Stage.COMPLETE
        assert final.progress == 100
        assert final.is_generating is False
        assert final.final_article.content == "Final text"
        assert final.final_article.seo_meta.title == "T"
        assert controller.session is final

    @pytest.mark.asyncio
    async def test_malformed_frames_are_skipped(self, settings, sse, chunked, agent_event) -> None:
        body = (
            sse(agent_event("researcher"))
            + b"data: {oops\n\n"
            + b'data: {"type": "heartbeat"}\n\n'
            + sse({"type": "event", "data": {"message": "no agent"}})
            + sse(DONE)
        )
        controller = _controller(settings)
        snapshots = [s async for s in controller.consume(chunked(body, 5))]
        assert len(snapshots) == 2
        assert snapshots[-1].presentation == "preview"

    @pytest.mark.asyncio
    async def test_deeply_nested_frame_is_skipped(self, settings, sse, chunked, agent_event) -> None:
        body = (
            sse(agent_event("researcher"))
            + b"data: " + b"[" * 200000 + b"]" * 200000 + b"\n\n"
            + sse(agent_event("writer"))
        )
        controller = _controller(settings)
        snapshots = [s async for s in controller.consume(chunked(body, 4096))]
        assert [s.tracked_stage for s in snapshots[:2]] == [Stage.RESEARCH, Stage.WRITING]
        assert [e.agent_id for e in controller.session.events][:2] == ["researcher", "writer"]

    @pytest.mark.asyncio
    async def test_eof_without_terminal_frame(self, settings, sse, chunked, agent_event) -> None:
        body = sse(agent_event("researcher")) + sse(agent_event("writer"))
        controller = _controller(settings)
        snapshots = [s async for s in controller.consume(chunked(body, 64))]
        final = snapshots[-1]
        assert final.is_generating is False
        assert final.failed is True
        assert final.events[-1].kind == EventKind.ERROR
        assert final.events[-1].message.startswith("Connection Error")

    @pytest.mark.asyncio
    async def test_backend_error_envelope(self, settings, sse, chunked, agent_event) -> None:
        body = sse(agent_event("writer")) + sse({"type": "error", "data": {"message": "Model overloaded"}})
        controller = _controller(settings)
        snapshots = [s async for s in controller.consume(chunked(body, 64))]
        assert len(snapshots) == 2
        final = snapshots[-1]
        assert final.is_generating is False
        assert final.events[-1].message == "Model overloaded"
        assert final.stage == Stage.WRITING

    @pytest.mark.asyncio
    async def test_error_after_done_keeps_article(self, settings, sse, chunked) -> None:
        body = sse(DONE) + sse({"type": "error", "message": "late failure"})
        controller = _controller(settings)
        snapshots = [s async for s in controller.consume(chunked(body, 64))]
        final = snapshots[-1]
        assert final.presentation == "preview"
        assert final.stage == Stage.COMPLETE
        assert final.events[-1].message == "late failure"


class TestObservers:
    """Tests for snapshot subscribers and cancellation."""

    @pytest.mark.asyncio
    async def test_observer_sees_every_snapshot(self, settings, sse, chunked, agent_event) -> None:
        body = sse(agent_event("researcher")) + sse(agent_event("writer")) + sse(DONE)
        controller = _controller(settings)
        seen = []
        unsubscribe = controller.subscribe(seen.append)
        snapshots = [s async for s in controller.consume(chunked(body, 3))]
        assert seen == snapshots

        unsubscribe()
        unsubscribe()
        controller.reset()
        assert len(seen) == len(snapshots)

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_stop_the_stream(self, settings, sse, chunked, agent_event) -> None:
        def broken(_session) -> None:
            raise RuntimeError("render failed")

        controller = _controller(settings)
        controller.subscribe(broken)
        body = sse(agent_event("writer")) + sse(DONE)
        snapshots = [s async for s in controller.consume(chunked(body, 64))]
        assert snapshots[-1].presentation == "preview"

    @pytest.mark.asyncio
    async def test_cancel_stops_processing(self, settings, sse, chunked, agent_event) -> None:
        body = sse(agent_event("researcher")) + sse(agent_event("writer")) + sse(agent_event("artist")) + sse(DONE)
        controller = _controller(settings)

        def cancel_on_writer(session) -> None:
            if session.tracked_stage == Stage.WRITING:
                controller.cancel()

        controller.subscribe(cancel_on_writer)
        snapshots = [s async for s in controller.consume(chunked(body, 64))]
        final = snapshots[-1]
        assert controller.cancelled is True
        assert final.cancelled is True
        assert final.is_generating is False
        assert final.tracked_stage == Stage.WRITING
        assert final.final_article is None

    @pytest.mark.asyncio
    async def test_reset_mid_stream_leaves_a_clean_session(self, settings, sse, agent_event) -> None:
        controller = _controller(settings)

        async def chunks():
            yield sse(agent_event("researcher"))
            controller.reset()
            yield sse(agent_event("writer"))

        snapshots = [s async for s in controller.consume(chunks())]
        assert len(snapshots) == 1
        assert controller.session.events == []
        assert controller.session.cancelled is False
        assert controller.session.presentation == "input"

    def test_reset(self, settings) -> None:
        controller = _controller(settings)
        session = controller.reset()
        assert session.presentation == "input"
        assert session.started is False

    @pytest.mark.asyncio
    async def test_retry_without_config(self, settings) -> None:
        with pytest.raises(RuntimeError):
            await GenerationController(settings=settings).retry()


class TestTransport:
    """Tests for the HTTP side of a generation."""

    @pytest.mark.asyncio
    async def test_stream_generation_over_http(self, sse, agent_event) -> None:
        received = []
        frames = [sse(agent_event("researcher")), sse(agent_event("writer")), sse(DONE)]
        async with _backend(frames, received=received) as settings:
            controller = GenerationController(settings=settings)
            config = GenerationConfig(keyword="cold brew", targetMarket="jp", uiLanguage="en")
            snapshots = [s async for s in controller.stream_generation(config)]

        assert received[0]["keyword"] == "cold brew"
        assert received[0]["targetMarket"] == "jp"
        assert received[0]["targetLanguage"] == "ja"
        assert snapshots[0].stage == Stage.RESEARCH
        assert snapshots[0].is_generating is True
        assert len(snapshots) == 4
        assert snapshots[-1].presentation == "preview"

    @pytest.mark.asyncio
    async def test_retry_reuses_last_config(self, sse) -> None:
        received = []
        async with _backend([sse(DONE)], received=received) as settings:
            controller = GenerationController(settings=settings)
            await controller.start_generation(GenerationConfig(keyword="tea"))
            session = await controller.retry()

        assert [body["keyword"] for body in received] == ["tea", "tea"]
        assert session.presentation == "preview"

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        async with _backend([], status=500) as settings:
            controller = GenerationController(settings=settings)
            session = await controller.start_generation(GenerationConfig(keyword="tea"))

        assert session.is_generating is False
        assert session.failed is True
        assert session.events[-1].message == "Connection Error: Failed to start generation (HTTP 500)"

    @pytest.mark.asyncio
    async def test_connection_dropped_mid_stream(self, sse, agent_event) -> None:
        frames = [sse(agent_event("researcher")), sse(agent_event("writer"))]
        async with _backend(frames, drop=True) as settings:
            controller = GenerationController(settings=settings)
            session = await controller.start_generation(GenerationConfig(keyword="tea"))

        assert session.is_generating is False
        assert session.failed is True
        assert [e.agent_id for e in session.events][:2] == ["researcher", "writer"]
        assert session.tracked_stage == Stage.WRITING
        assert session.events[-1].kind == EventKind.ERROR
        assert session.events[-1].message.startswith("Connection Error")

    @pytest.mark.asyncio
    async def test_connection_refused(self) -> None:
        settings = Settings(BACKEND_BASE_URL="http://127.0.0.1:1", REQUEST_TIMEOUT_SECONDS=2)
        controller = GenerationController(settings=settings)
        session = await controller.start_generation(GenerationConfig(keyword="tea"))
        assert session.failed is True
        assert session.events[-1].kind == EventKind.ERROR
        assert session.events[-1].message.startswith("Connection Error:")


class TestGenerationService:
    """Tests for the app-wide service holder."""

    @pytest.mark.asyncio
    async def test_controllers_share_the_http_client(self, settings) -> None:
        service = GenerationService(settings=settings)
        await service.startup()
        try:
            first, second = service.create_controller(), service.create_controller()
            assert first._http is second._http is not None
            assert first.session is not second.session
        finally:
            await service.shutdown()
        assert service._http is None
