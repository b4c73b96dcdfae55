"""
Category suggestions from a complaint photo (Gemini vision).

Suggestions are advisory: the citizen still picks the categories. Any failure
of the remote model (not configured, network error, unparseable output) is
logged and yields an empty list.
"""
import json
import logging
import re

from google import genai
from google.genai import types

from civicdesk.core.errors import CollaboratorError
from civicdesk.engine.routing import CategoryVocabulary

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic"}


def build_prompt(labels: list[str]) -> str:
    return (
        "You are triaging photos submitted to a municipal civic complaint desk. "
        "Pick every issue category from the list below that is clearly visible in the image. "
        f"Categories: {json.dumps(labels, ensure_ascii=False)}. "
        "Return a JSON array of category strings copied exactly from the list, most relevant first. "
        "Return [] if none apply. JSON only, no markdown."
    )


def parse_labels(raw_text: str) -> list[str]:
    """Extract a JSON array of strings from model output, tolerating code fences."""
    cleaned = raw_text.strip()
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*", "", cleaned).strip()
    cleaned = re.sub(r"```$", "", cleaned).strip()
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("["), cleaned.rfind("]")
        if start == -1 or end <= start:
            raise CollaboratorError("Classifier returned non-JSON output")
        payload = json.loads(cleaned[start : end + 1])

    if isinstance(payload, dict):
        payload = payload.get("categories", [])
    if not isinstance(payload, list):
        raise CollaboratorError("Classifier output is not a list of labels")
    return [str(item).strip() for item in payload if str(item).strip()]


class CategoryClassifier:
    def __init__(self, api_key: str, model: str, vocabulary: CategoryVocabulary):
        self.api_key = api_key
        self.model = model
        self.vocabulary = vocabulary

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def suggest(self, image_bytes: bytes, mime_type: str) -> list[str]:
        """Canonical category labels for the image; [] when unavailable."""
        if not self.configured:
            logger.debug("Category classifier not configured; returning no suggestions")
            return []
        if not image_bytes:
            return []

        try:
            raw = await self._generate(image_bytes, mime_type)
            labels = parse_labels(raw)
        except Exception as exc:
            logger.error("Category classification failed: %s", exc)
            return []

        suggestions: dict[str, None] = {}
        for label in labels:
            # labels outside the vocabulary are dropped
            if self.vocabulary.is_known(label):
                suggestions.setdefault(self.vocabulary.canonical(label), None)
        logger.info("Classifier suggested %s", list(suggestions))
        return list(suggestions)

    async def _generate(self, image_bytes: bytes, mime_type: str) -> str:
        client = genai.Client(api_key=self.api_key)
        response = await client.aio.models.generate_content(
            model=self.model,
            contents=[
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                types.Part.from_text(text=build_prompt(self.vocabulary.labels)),
            ],
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
        raw_text = (response.text or "").strip()
        if not raw_text:
            raise CollaboratorError("Classifier returned an empty response")
        return raw_text
