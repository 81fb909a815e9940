import logging
from typing import Awaitable, Callable, List, Optional
from urllib.parse import urlparse

from pydantic import ValidationError
from pydantic_core import from_json

from app.schemas import (
    CheckInAnalysis,
    CheckInContext,
    CheckInResource,
    GeneratedCheckIn,
    PartialCheckInAnalysis,
)
from app.services.checkin_errors import GenerationFailure, SearchFailure
from app.services.checkin_prompt import CHECKIN_SYSTEM_PROMPT, build_checkin_prompt

logger = logging.getLogger(__name__)

PartialCallback = Callable[[PartialCheckInAnalysis], Awaitable[None]]

MAX_SEARCH_TOPICS = 3

RESOURCE_SEARCH_PROMPT = """Find high-quality, practical resources for someone working on: {topics}.

Look for:
- Science-backed articles from reputable sources
- Active, supportive subreddits related to these activities
- Helpful YouTube videos from credible creators

Prefer recent, practical content over generic listicles."""


def parse_partial_analysis(text: str) -> Optional[PartialCheckInAnalysis]:
    """
    Best-effort parse of an incomplete JSON document.

    Returns None while the text is not yet an object the schema accepts.
    """
    try:
        data = from_json(text, allow_partial="trailing-strings")
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        partial = PartialCheckInAnalysis.model_validate(data)
    except ValidationError:
        return None
    # Resources come from search, never from the model
    partial.resources = None
    return partial


class CheckInGenerator:
    """Streams the narrative part of a check-in from the model."""

    def __init__(self, provider, temperature: float = 0.7):
        self.provider = provider
        self.temperature = temperature

    async def generate(
        self,
        context: CheckInContext,
        resources: List[CheckInResource],
        on_partial: Optional[PartialCallback] = None,
    ) -> CheckInAnalysis:
        prompt = build_checkin_prompt(context, resources)
        text = ""

        async for delta in self.provider.complete_stream(
            prompt,
            system_instruction=CHECKIN_SYSTEM_PROMPT,
            response_schema=GeneratedCheckIn,
            temperature=self.temperature,
        ):
            text += delta
            if on_partial is None:
                continue
            partial = parse_partial_analysis(text)
            if partial is not None:
                await on_partial(partial)

        try:
            generated = GeneratedCheckIn.model_validate_json(text)
        except ValidationError as e:
            logger.error(f"Model returned an invalid check-in ({len(text)} chars): {e}")
            raise GenerationFailure() from e

        return CheckInAnalysis(**generated.model_dump(), resources=resources)


def classify_resource_url(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if host == "reddit.com" or host.endswith(".reddit.com"):
        return "subreddit"
    if host in ("youtube.com", "youtu.be") or host.endswith(".youtube.com"):
        return "video"
    return "article"


class ResourceSearchService:
    """Finds external reading material for the user's top tracked activities."""

    def __init__(self, provider, max_resources: int = 3):
        self.provider = provider
        self.max_resources = max_resources

    async def search(self, context: CheckInContext) -> List[CheckInResource]:
        topics = [t.name for t in context.activity_analysis.by_type[:MAX_SEARCH_TOPICS]]
        if not topics:
            return []

        prompt = RESOURCE_SEARCH_PROMPT.format(topics=", ".join(topics))
        try:
            sources = await self.provider.search_web(prompt)
        except Exception as e:
            raise SearchFailure(f"Resource search failed: {e}") from e

        resources = []
        for source in sources:
            url = source.get("url")
            if not url:
                continue
            resources.append(
                CheckInResource(
                    title=source.get("title") or url,
                    url=url,
                    type=classify_resource_url(url),
                    description=f"Related to {', '.join(topics)}",
                )
            )
            if len(resources) >= self.max_resources:
                break

        logger.info(f"Found {len(resources)} resources for {len(topics)} topics")
        return resources
