import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Type

from google import genai
from google.genai import types
from pydantic import BaseModel

from app.config import get_settings

logger = logging.getLogger(__name__)


class GeminiProvider:
    """Gemini provider using the google-genai SDK."""
    
    def __init__(self, api_key: Optional[str] = None):
        settings = get_settings()
        self.api_key = api_key or settings.gemini_api_key
        self.model = settings.gemini_model
        self.search_model = settings.gemini_search_model
        self._client = None

    @property
    def client(self) -> genai.Client:
        """SDK client, created on first use so a missing key fails inside a run."""
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @client.setter
    def client(self, value: genai.Client) -> None:
        self._client = value
    
    async def complete_stream(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Type[BaseModel]] = None,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a completion, yielding text deltas as they arrive.
        
        When ``response_schema`` is given the model is constrained to JSON
        matching it. Errors propagate to the caller.
        """
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            candidate_count=1,
            response_mime_type="application/json" if response_schema else "text/plain",
            response_schema=response_schema,
        )
        
        contents = [
            types.Content(role="user", parts=[types.Part.from_text(text=prompt)])
        ]
        
        async for chunk in await self.client.aio.models.generate_content_stream(
            model=model or self.model,
            contents=contents,
            config=config,
        ):
            if not chunk.candidates:
                continue
            
            cand = chunk.candidates[0]
            if not cand.content or not cand.content.parts:
                continue
            
            for part in cand.content.parts:
                # Skip thought summaries, only the answer is part of the JSON
                if getattr(part, "thought", None):
                    continue
                if part.text:
                    yield part.text
    
    async def search_web(self, prompt: str, model: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Run a Google Search grounded request and return the cited sources.
        
        Each source is ``{"url": ..., "title": ...}``, de-duplicated by URL in
        citation order.
        """
        config = types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())],
        )
        response = await self.client.aio.models.generate_content(
            model=model or self.search_model,
            contents=prompt,
            config=config,
        )
        
        sources = []
        seen = set()
        if not response.candidates:
            return sources
        metadata = response.candidates[0].grounding_metadata
        if not metadata or not metadata.grounding_chunks:
            return sources
        for chunk in metadata.grounding_chunks:
            web = chunk.web
            if not web or not web.uri or web.uri in seen:
                continue
            seen.add(web.uri)
            sources.append({"url": web.uri, "title": web.title})
        return sources
