"""Gemini EnrichmentClientPort adapter over the Generative Language REST API."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from scholarlens.application.prompts import PromptRegistry
from scholarlens.application.prompts.reader import (
    COMIC_FALLBACK_DIALOGUES,
    COMIC_IMAGE_PROMPT,
    COMIC_PANELS_SCHEMA,
    NEWSPAPER_SNIPPETS_SCHEMA,
)
from scholarlens.application.prompts.source_analysis import (
    COVER_IMAGE_PROMPT,
    SOURCE_RESPONSE_SCHEMA,
)
from scholarlens.application.prompts.writing import BRAINSTORMING_RESPONSE_SCHEMA
from scholarlens.config import ScholarLensConfig
from scholarlens.domain.errors import (
    ConfigurationError,
    EnrichmentError,
    GroundedSearchError,
    PolicyRejectedError,
)
from scholarlens.domain.research import (
    BrainstormingData,
    ComicPanel,
    GroundedResponse,
    NewspaperSnippet,
    ProcessedSource,
    SourceRecord,
)
from scholarlens.infrastructure.api_clients.base import APIClient, APIError

logger = logging.getLogger(__name__)

_BLOCKING_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}
_SNIPPET_CONTENT_CHARS = 3000


class GeminiEnrichmentClient:
    """EnrichmentClientPort implementation backed by Gemini and Imagen."""

    def __init__(
        self,
        config: Optional[ScholarLensConfig] = None,
        *,
        api_client: Optional[APIClient] = None,
        prompt_registry: Optional[PromptRegistry] = None,
    ):
        self._config = config or ScholarLensConfig.from_env()
        if api_client is None:
            if not self._config.gemini_api_key:
                raise ConfigurationError("GEMINI_API_KEY environment variable not set.")
            api_client = APIClient(
                self._config.gemini_base_url,
                api_key=self._config.gemini_api_key,
                timeout=self._config.request_timeout,
                request_interval=self._config.request_interval,
                api_key_header="x-goog-api-key",
            )
        self._api = api_client
        self._prompts = prompt_registry or PromptRegistry()

    async def grounded_search(self, query: str) -> GroundedResponse:
        prompt = self._prompts.get("grounded_summary")
        body = self._content_body(
            system=prompt.system,
            user=prompt.user.format(query=query),
            temperature=0.1,
        )
        body["tools"] = [{"google_search": {}}]

        try:
            response = await self._generate(self._config.text_model, body)
        except APIError as exc:
            logger.error("Grounded search failed query=%s error=%s", query, exc)
            if "SAFETY" in (exc.body or ""):
                raise PolicyRejectedError(
                    "The answer was blocked by safety policies. Please try a different query."
                ) from exc
            raise GroundedSearchError(
                "Could not process your request. Check your query or try again later."
            ) from exc
        except Exception as exc:
            logger.error("Grounded search failed query=%s error=%s", query, exc)
            raise GroundedSearchError(
                "Could not process your request. Check your query or try again later."
            ) from exc

        if _is_blocked(response):
            raise PolicyRejectedError(
                "The answer was blocked by safety policies. Please try a different query."
            )

        candidate = _first_candidate(response)
        chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
        uris = [(chunk.get("web") or {}).get("uri") for chunk in chunks if isinstance(chunk, dict)]
        return GroundedResponse.build(_candidate_text(candidate), uris)

    async def enrich_source(self, uri: str, query: str) -> ProcessedSource:
        prompt = self._prompts.get("source_processing")
        body = self._content_body(
            system=prompt.system,
            user=prompt.user.format(query=query, uri=uri),
            temperature=0.1,
            response_schema=SOURCE_RESPONSE_SCHEMA,
        )
        try:
            response = await self._generate(self._config.text_model, body)
            parsed = _safe_parse_json(_candidate_text(_first_candidate(response)))
            if parsed is None:
                raise EnrichmentError("model returned no parsable JSON")
        except Exception as exc:
            logger.warning("Error processing source %s: %s", uri, exc)
            return ProcessedSource.failure(uri, str(exc) or type(exc).__name__)

        # The model may hallucinate a different URL; the requested URI wins.
        return ProcessedSource.from_payload(parsed, url=uri)

    async def generate_cover(self, title: str, summary: str) -> str:
        return await self._predict_image(
            COVER_IMAGE_PROMPT.format(title=title, summary=summary),
            aspect_ratio="3:4",
            label=f"cover for {title!r}",
        )

    async def generate_brainstorming_map(
        self, results: Sequence[SourceRecord], theme: str
    ) -> BrainstormingData:
        prompt = self._prompts.get("brainstorming")
        documents = "\n".join(
            f"[{index}] {record.title}: {record.brief_summary}"
            for index, record in enumerate(results)
        )
        body = self._content_body(
            system=prompt.system,
            user=prompt.user.format(theme=theme, documents=documents),
            temperature=0.2,
            response_schema=BRAINSTORMING_RESPONSE_SCHEMA,
        )
        try:
            response = await self._generate(self._config.text_model, body)
        except Exception as exc:
            logger.error("Error generating brainstorming map: %s", exc)
            raise EnrichmentError(
                "Could not generate the brainstorming map. The model response may be invalid."
            ) from exc

        parsed = _safe_parse_json(_candidate_text(_first_candidate(response)))
        if parsed is None:
            raise EnrichmentError(
                "Could not generate the brainstorming map. The model response may be invalid."
            )
        return BrainstormingData.from_dict(parsed)

    async def generate_article(self, results: List[SourceRecord], topic: str) -> str:
        prompt = self._prompts.get("article")
        sources = "\n\n---\n\n".join(_format_source_for_article(record) for record in results)
        body = self._content_body(
            system=prompt.system,
            user=prompt.user.format(topic=topic, sources=sources),
            temperature=0.4,
        )
        try:
            response = await self._generate(self._config.text_model, body)
        except Exception as exc:
            logger.error("Error generating article: %s", exc)
            raise EnrichmentError("Could not generate the scientific article.") from exc

        text = _candidate_text(_first_candidate(response))
        if not text:
            raise EnrichmentError("Could not generate the scientific article.")
        return text

    async def translate_text(self, text: str, target_language: str) -> str:
        prompt = self._prompts.get("translation")
        body = self._content_body(
            system=prompt.system,
            user=prompt.user.format(language=target_language, text=text),
            temperature=0.0,
        )
        try:
            response = await self._generate(self._config.text_model, body)
        except Exception as exc:
            logger.error("Error translating text to %s: %s", target_language, exc)
            raise EnrichmentError("Failed to translate text.") from exc

        translated = _candidate_text(_first_candidate(response))
        if not translated:
            raise EnrichmentError("Failed to translate text.")
        return translated

    async def generate_newspaper_snippets(
        self, article_html: str, title: str
    ) -> List[NewspaperSnippet]:
        prompt = self._prompts.get("newspaper_snippets")
        body = self._content_body(
            system=prompt.system,
            user=prompt.user.format(title=title, content=article_html[:_SNIPPET_CONTENT_CHARS]),
            temperature=0.6,
            response_schema=NEWSPAPER_SNIPPETS_SCHEMA,
        )
        try:
            response = await self._generate(self._config.text_model, body)
        except Exception as exc:
            logger.warning("Error generating newspaper snippets for %r: %s", title, exc)
            return []

        items = _parse_json_list(_candidate_text(_first_candidate(response)))
        return [NewspaperSnippet.from_dict(item) for item in items if isinstance(item, dict)]

    async def generate_comic_image(self, topic: str) -> str:
        return await self._predict_image(
            COMIC_IMAGE_PROMPT.format(topic=topic),
            aspect_ratio="16:9",
            label=f"comic strip for {topic!r}",
        )

    async def generate_comic_panels(self, topic: str) -> List[ComicPanel]:
        prompt = self._prompts.get("comic_panels")
        body = self._content_body(
            system=prompt.system,
            user=prompt.user.format(topic=topic),
            temperature=0.7,
            response_schema=COMIC_PANELS_SCHEMA,
        )
        try:
            response = await self._generate(self._config.text_model, body)
            items = _parse_json_list(_candidate_text(_first_candidate(response)))
            if len(items) != 3 or not all(isinstance(item, dict) for item in items):
                raise EnrichmentError(f"expected 3 comic panels, got {len(items)}")
        except Exception as exc:
            logger.warning("Error generating comic panels for %r: %s", topic, exc)
            return [ComicPanel(dialogue=text) for text in COMIC_FALLBACK_DIALOGUES]

        return [ComicPanel(dialogue=str(item.get("dialogue") or "")) for item in items]

    async def close(self) -> None:
        await self._api.close()

    async def _predict_image(self, prompt: str, *, aspect_ratio: str, label: str) -> str:
        """Imagen ``:predict`` call returning a JPEG data URI, or ``''`` on any failure."""
        body = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": aspect_ratio,
                "outputOptions": {"mimeType": "image/jpeg"},
            },
        }
        try:
            response = await self._api.post_json(
                f"models/{self._config.image_model}:predict", body
            )
        except Exception as exc:
            logger.warning("Error generating %s: %s", label, exc)
            return ""

        predictions = response.get("predictions") or []
        image_bytes = ""
        if predictions and isinstance(predictions[0], dict):
            image_bytes = str(predictions[0].get("bytesBase64Encoded") or "")
        if not image_bytes:
            logger.warning("Image generation returned no images for %s", label)
            return ""
        return f"data:image/jpeg;base64,{image_bytes}"

    async def _generate(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._api.post_json(f"models/{model}:generateContent", body)

    @staticmethod
    def _content_body(
        *,
        system: str,
        user: str,
        temperature: float,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {"temperature": temperature}
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema
        return {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": user}]}],
            "generationConfig": generation_config,
        }


def _first_candidate(response: Dict[str, Any]) -> Dict[str, Any]:
    candidates = response.get("candidates") or []
    if candidates and isinstance(candidates[0], dict):
        return candidates[0]
    return {}


def _candidate_text(candidate: Dict[str, Any]) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict)).strip()


def _is_blocked(response: Dict[str, Any]) -> bool:
    feedback = response.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        return True
    reason = str(_first_candidate(response).get("finishReason") or "").upper()
    return reason in _BLOCKING_FINISH_REASONS


def _safe_parse_json(raw: str) -> Optional[Dict[str, Any]]:
    text = (raw or "").strip()
    if not text:
        return None
    try:
        obj = json.loads(text)
        return obj if isinstance(obj, dict) else None
    except ValueError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        try:
            obj = json.loads(text[start : end + 1])
            return obj if isinstance(obj, dict) else None
        except ValueError:
            return None
    return None


def _format_source_for_article(record: SourceRecord) -> str:
    authors = ", ".join(record.authors) or "N/A"
    year = record.publication_year or "N/A"
    return (
        f"Source: {record.title}\n"
        f"Authors: {authors}\n"
        f"Year: {year}\n"
        f"Summary: {record.brief_summary}\n"
        f"URL: {record.url}"
    )


def _parse_json_list(raw: str) -> List[Any]:
    text = (raw or "").strip()
    start = text.find("[")
    end = text.rfind("]")
    if start < 0 or end <= start:
        return []
    try:
        obj = json.loads(text[start : end + 1])
    except ValueError:
        return []
    return obj if isinstance(obj, list) else []
