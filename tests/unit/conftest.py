# tests/unit/conftest.py
"""Shared fixtures: a scripted image client, sample plans and batches."""

import asyncio
import base64
import io

import pytest
from PIL import Image

from linework.llm.types import BookDimensions, BookMetadata, BookPlan, PageSpec
from linework.models.jobs import BatchState, build_batch

COVER_PROMPT = "COVER: front cover art"


def make_png_data_uri(width: int = 30, height: int = 40) -> str:
    """Tiny real PNG as a data URI (export code decodes it with Pillow)."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


PNG_DATA_URI = make_png_data_uri()


class FakeImageClient:
    """
    Scripted stand-in for GenAIClient.synthesize_image.

    `failures` maps a prompt to the exception raised for it. Tracks call order
    and the maximum number of page requests in flight at once.
    """

    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.calls: list[tuple[str, str]] = []
        self._pages_in_flight = 0
        self.max_pages_in_flight = 0
        self.closed = False

    @property
    def page_calls(self) -> list[str]:
        return [prompt for prompt, _ in self.calls if not prompt.startswith("COVER")]

    async def synthesize_image(self, prompt: str, aspect_ratio: str) -> str:
        self.calls.append((prompt, aspect_ratio))
        is_page = not prompt.startswith("COVER")
        if is_page:
            self._pages_in_flight += 1
            self.max_pages_in_flight = max(self.max_pages_in_flight, self._pages_in_flight)
        try:
            await asyncio.sleep(0)
            error = self.failures.get(prompt)
            if error is not None:
                raise error
            return PNG_DATA_URI
        finally:
            if is_page:
                self._pages_in_flight -= 1

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_plan(page_count: int = 3, title: str = "Space Cats Adventure") -> BookPlan:
    return BookPlan(
        metadata=BookMetadata(
            title=title,
            subtitle="A Cosmic Coloring Book",
            description="Cats exploring the galaxy.",
            keywords=["space", "cats", "coloring"],
        ),
        pages=[
            PageSpec(title=f"Scene {i}", prompt=f"cat scene {i}", saying=f"Meow {i}")
            for i in range(1, page_count + 1)
        ],
    )


def make_batch(page_count: int = 3, cover: bool = True) -> BatchState:
    """Fresh batch whose page prompts are 'page 1'..'page N'."""
    plan = make_plan(page_count)
    return build_batch(
        plan,
        "space cats",
        BookDimensions(width=8.5, height=11, unit="in"),
        [f"page {i}" for i in range(1, page_count + 1)],
        target_age="4-8",
        cover_prompt=COVER_PROMPT if cover else None,
    )


@pytest.fixture
def fake_client() -> FakeImageClient:
    return FakeImageClient()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
