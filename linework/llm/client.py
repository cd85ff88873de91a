# linework/llm/client.py
"""Remote generation client: structured planning and image synthesis over google-genai."""

import base64
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from google import genai
from google.genai import types
from pydantic import ValidationError

from linework.config.schema import RetryPolicy
from linework.errors import EmptyPlanError, NoImageDataError, PlanParseError
from linework.prompts import plan_prompt, template_prompt

from .retry import resilient_call
from .types import DEFAULT_AUTHOR, BookMetadata, BookPlan, PageSpec, TemplateAnalysis

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _plan_schema(page_count: int) -> types.Schema:
    """JSON response schema pinning the page list to exactly page_count items."""
    page = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "title": types.Schema(type=types.Type.STRING),
            "description": types.Schema(type=types.Type.STRING),
            "saying": types.Schema(type=types.Type.STRING),
        },
        required=["title", "description", "saying"],
    )
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "title": types.Schema(type=types.Type.STRING),
            "subtitle": types.Schema(type=types.Type.STRING),
            "description": types.Schema(type=types.Type.STRING),
            "authorName": types.Schema(type=types.Type.STRING),
            "keywords": types.Schema(
                type=types.Type.ARRAY, items=types.Schema(type=types.Type.STRING)
            ),
            "pages": types.Schema(
                type=types.Type.ARRAY,
                items=page,
                min_items=page_count,
                max_items=page_count,
            ),
        },
        required=["title", "subtitle", "description", "authorName", "keywords", "pages"],
    )


def parse_plan(payload: dict[str, Any]) -> BookPlan:
    """
    Map a raw planning payload onto BookPlan, defaulting every missing field.

    Args:
        payload: Decoded JSON object from the planning response

    Returns:
        BookPlan (pages may be empty; the caller decides whether that's fatal)
    """
    pages = [
        PageSpec(
            title=str(page.get("title") or ""),
            prompt=str(page.get("description") or page.get("prompt") or ""),
            saying=str(page.get("saying") or ""),
        )
        for page in payload.get("pages") or []
        if isinstance(page, dict)
    ]
    metadata = BookMetadata(
        title=str(payload.get("title") or ""),
        subtitle=str(payload.get("subtitle") or ""),
        description=str(payload.get("description") or ""),
        author_name=str(payload.get("authorName") or DEFAULT_AUTHOR),
        keywords=[str(k) for k in payload.get("keywords") or []],
    )
    return BookPlan(metadata=metadata, pages=pages)


def extract_image(response: Any) -> str | None:
    """
    Return the first inline image part of a response as a data URI.

    Args:
        response: GenerateContentResponse (or an object shaped like one)

    Returns:
        "data:<mime>;base64,<payload>" or None if no part carries image data
    """
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            data = getattr(inline, "data", None)
            if not data:
                continue
            # The SDK decodes inline data to bytes; raw REST payloads stay base64 text
            encoded = data if isinstance(data, str) else base64.b64encode(data).decode("ascii")
            mime_type = getattr(inline, "mime_type", None) or "image/png"
            return f"data:{mime_type};base64,{encoded}"
    return None


class GenAIClient:
    """
    Async client for the remote generation service.

    Every outbound request goes through resilient_call with the configured
    RetryPolicy, so rate-limit and overload failures are retried before they
    become visible to callers.
    """

    def __init__(
        self,
        api_key: str | None,
        text_model: str = "gemini-3-flash-preview",
        image_model: str = "gemini-2.5-flash-image",
        retry: RetryPolicy | None = None,
        timeout: int = 120,
    ):
        """
        Initialize the generation client.

        Args:
            api_key: Service API key
            text_model: Model for structured planning requests
            image_model: Model for image synthesis
            retry: Backoff policy (defaults to RetryPolicy())
            timeout: Per-request timeout in seconds
        """
        self._api_key = api_key
        self.text_model = text_model
        self.image_model = image_model
        self.retry = retry or RetryPolicy()
        self._timeout = timeout
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        """Lazy-loaded SDK client."""
        if self._client is None:
            if not self._api_key:
                raise ValueError(
                    "No API key configured: set genai.api_key or GEMINI_API_KEY"
                )
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=self._timeout * 1000),
            )
        return self._client

    async def _call(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await resilient_call(
            operation,
            self.retry.max_retries,
            self.retry.base_delay,
            growth_factor=self.retry.growth_factor,
            max_jitter=self.retry.max_jitter,
        )

    async def plan(
        self, topic: str, target_age: str | None = None, page_count: int = 20
    ) -> BookPlan:
        """
        Request book metadata and exactly page_count page specs for a topic.

        Args:
            topic: User-supplied book topic
            target_age: Reader age range (e.g. "4-8")
            page_count: Number of page specs the response schema must contain

        Returns:
            BookPlan with metadata and page specs

        Raises:
            PlanParseError: If the response is not a JSON object
            EmptyPlanError: If the response contains no page specs
        """
        prompt = plan_prompt(topic, target_age or "all ages", page_count)
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=_plan_schema(page_count),
        )
        logger.info(f"Planning {page_count} pages for topic={topic!r} with {self.text_model}")

        response = await self._call(
            lambda: self.client.aio.models.generate_content(
                model=self.text_model, contents=prompt, config=config
            )
        )

        try:
            payload = json.loads(response.text or "{}")
        except json.JSONDecodeError as e:
            raise PlanParseError(f"Planning response was not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise PlanParseError("Planning response was not a JSON object")

        plan = parse_plan(payload)
        if not plan.pages:
            raise EmptyPlanError(f"Planning returned no pages for topic {topic!r}")
        if len(plan.pages) != page_count:
            logger.warning(f"Requested {page_count} pages, received {len(plan.pages)}")

        logger.info(f"Planned '{plan.metadata.title}' with {len(plan.pages)} pages")
        return plan

    async def synthesize_image(self, prompt: str, aspect_ratio: str) -> str:
        """
        Generate one image for a prompt at the given aspect ratio.

        Args:
            prompt: Full image prompt (styling included by the caller)
            aspect_ratio: Supported ratio id, e.g. "3:4"

        Returns:
            Image as a base64 data URI

        Raises:
            NoImageDataError: If the response carries no image part
        """
        config = types.GenerateContentConfig(
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
        )

        async def _generate() -> str:
            response = await self.client.aio.models.generate_content(
                model=self.image_model, contents=prompt, config=config
            )
            image = extract_image(response)
            if image is None:
                raise NoImageDataError("No image data returned.")
            return image

        return await self._call(_generate)

    async def analyze_template(self, image_bytes: bytes, mime_type: str) -> TemplateAnalysis:
        """
        Read the intended trim size from an uploaded cover template image.

        Unparseable output yields an empty TemplateAnalysis instead of raising.

        Args:
            image_bytes: Raw template image
            mime_type: Image MIME type (e.g. "image/png")

        Returns:
            TemplateAnalysis with whatever fields could be read
        """
        contents = [
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            template_prompt(),
        ]
        config = types.GenerateContentConfig(response_mime_type="application/json")

        response = await self._call(
            lambda: self.client.aio.models.generate_content(
                model=self.text_model, contents=contents, config=config
            )
        )

        try:
            data = json.loads(response.text or "{}")
        except json.JSONDecodeError:
            logger.warning("Template analysis returned invalid JSON, ignoring")
            return TemplateAnalysis()
        if not isinstance(data, dict):
            return TemplateAnalysis()

        try:
            return TemplateAnalysis(
                width=data.get("width"),
                height=data.get("height"),
                has_spine=data.get("hasSpine"),
            )
        except ValidationError:
            logger.warning(f"Template analysis returned unusable fields: {data}")
            return TemplateAnalysis()

    async def close(self) -> None:
        """Close the async transport if initialized."""
        if self._client is not None:
            await self._client.aio.aclose()
            self._client = None
