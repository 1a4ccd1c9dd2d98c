# foodrescue/ai_engine.py
import base64
import json
import time
from typing import List, Optional

import openai
from openai import OpenAI

from .config import Settings
from .logging import get_logger
from .models import SupplierRating
from .schemas import FOOD_CATEGORIES

log = get_logger("ai_engine")

NOT_CONFIGURED = "AI assistant is not configured. Please try again later."
AUTH_FAILED = "AI service authentication failed. Please contact the site administrator."
OVERLOADED = "AI service is currently overloaded. Please try again in a moment."
REQUEST_FAILED = "Failed to get a response from the AI service."

CHAT_SYSTEM_PROMPT = """You are the FoodRescue assistant, helping people reduce food waste in their community.
FoodRescue connects donors with surplus food (grocers, bakeries, restaurants, households) to people and organizations who can use it.

You can help with:
- Posting food: title, description, quantity, category (produce, bakery, dairy, prepared, packaged, other), pickup window and location.
- Photo analysis: donors can upload a photo and the platform suggests listing details and freshness/quality scores (0-100).
- Claiming food: browsing available listings on the map and claiming them for pickup.
- Food safety: storage temperatures, shelf life and when food should not be donated.
- Live monitoring: temperature and humidity readings from storage sensors.
- Supplier ratings: how organizations rate donors on reliability, quality and food-safety certification.

Keep answers short, practical and friendly. If a question is unrelated to food donation or food safety, gently steer back."""

CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 500


class AIServiceError(Exception):
    """AI call failed; the message is safe to show to callers."""
    status_code = 500


class AIServiceUnavailable(AIServiceError):
    status_code = 503


def translate_error(exc: openai.OpenAIError) -> AIServiceError:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AIServiceUnavailable(AUTH_FAILED)
    if isinstance(exc, openai.RateLimitError):
        return AIServiceUnavailable(OVERLOADED)
    if isinstance(exc, openai.APIStatusError) and exc.status_code in (502, 503, 529):
        return AIServiceUnavailable(OVERLOADED)
    return AIServiceError(REQUEST_FAILED)


class AIGateway:
    """Single-shot calls to an OpenAI-compatible endpoint (OpenRouter by default)."""

    def __init__(self, api_key: Optional[str], base_url: str = "https://openrouter.ai/api/v1",
                 model_id: str = "openai/gpt-4o-mini", vision_model_id: str = "qwen/qwen-2-vl-72b-instruct",
                 site_url: str = "http://localhost:5000", app_name: str = "FoodRescue"):
        self.model_id = model_id
        self.vision_model_id = vision_model_id
        self._client = None
        if api_key:
            self._client = OpenAI(
                base_url=base_url,
                api_key=api_key,
                max_retries=0,
                default_headers={
                    "HTTP-Referer": site_url,
                    "X-Title": app_name,
                },
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIGateway":
        return cls(
            api_key=settings.openrouter_api_key,
            base_url=settings.ai_base_url,
            model_id=settings.model_id,
            vision_model_id=settings.vision_model_id,
            site_url=settings.site_url,
            app_name=settings.app_name,
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    def _complete(self, **kwargs) -> str:
        if self._client is None:
            raise AIServiceUnavailable(NOT_CONFIGURED)
        start_time = time.time()
        try:
            response = self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            log.error("❌ AI request to %s failed: %s", kwargs.get("model"), e)
            raise translate_error(e) from e
        log.info("AI response from %s in %.2fs", kwargs.get("model"), time.time() - start_time)
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIServiceError(REQUEST_FAILED)
        return content

    def chat(self, messages: List[dict]) -> str:
        """Answer the conversation; ``messages`` are ``{"role", "content"}`` dicts, oldest first."""
        log.info("🚀 Sending chat request (%s, %d messages)", self.model_id, len(messages))
        reply = self._complete(
            model=self.model_id,
            messages=[{"role": "system", "content": CHAT_SYSTEM_PROMPT}, *messages],
            temperature=CHAT_TEMPERATURE,
            max_tokens=CHAT_MAX_TOKENS,
        )
        return reply.strip()

    def detect_food(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> dict:
        base64_image = base64.b64encode(image_bytes).decode("utf-8")
        image_url = f"data:{mime_type};base64,{base64_image}"

        system_prompt = f"""You help donors post surplus food. Look at the photo and suggest listing details.

    Return ONLY valid JSON:
    {{
        "title": "Short listing title, e.g. 'Fresh Sourdough Loaves'",
        "description": "One or two sentences on what it is and its condition",
        "quantity": "Estimated amount with unit, e.g. '12 loaves' or '5 lbs'",
        "category": "{'|'.join(FOOD_CATEGORIES)}",
        "freshness_score": <int 0-100>,
        "quality_score": <int 0-100>,
        "defects_detected": ["visible issues such as bruising or mold; empty if none"]
    }}
    """
        log.info("🚀 Sending food detection request (%s, %d bytes)", self.vision_model_id, len(image_bytes))
        content = self._complete(
            model=self.vision_model_id,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": [{"type": "image_url", "image_url": {"url": image_url}}]},
            ],
            temperature=0.4,
            max_tokens=600,
        )
        data = _clean_json(content)
        if data is None:
            log.warning("Food detection returned unusable output: %s", content[:80])
            raise AIServiceError("Could not detect food details from the image.")
        return _food_suggestion(data)

    def analyze_supplier(self, rating: SupplierRating, supplier_name: str) -> dict:
        """Narrative trust analysis for one supplier; factors come from the stored rating."""
        factors = {
            "googleReviewScore": rating.google_review_score,
            "foodSafetyCertified": bool(rating.food_safety_certified),
            "reliabilityScore": rating.reliability_score,
            "qualityScore": rating.quality_score,
            "totalDonations": rating.total_donations,
        }
        prompt = f"""Supplier: {supplier_name}
    Overall rating: {rating.overall_rating}
    Factors: {json.dumps(factors)}

    Task: explain in 2-3 sentences how trustworthy this food donor is for a food-rescue organization.
    Weigh food-safety certification and reliability most heavily. No marketing language.

    Return ONLY JSON: {{"reasoning": "...", "confidence": <float 0.0-1.0>}}
    """
        content = self._complete(
            model=self.model_id,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.2,
            max_tokens=400,
        )
        data = _clean_json(content)
        if data is None or not data.get("reasoning"):
            raise AIServiceError("Could not analyze supplier.")
        return {
            "reasoning": str(data["reasoning"]),
            "factors": factors,
            "confidence": _clamp(_to_float(data.get("confidence"), 0.5), 0.0, 1.0),
        }


def _clean_json(text: str) -> Optional[dict]:
    text = text.replace("```json", "").replace("```", "").strip()
    start_idx = text.find('{')
    end_idx = text.rfind('}')
    if start_idx != -1 and end_idx != -1:
        text = text[start_idx : end_idx + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _food_suggestion(data: dict) -> dict:
    category = str(data.get("category") or "").strip().lower()
    defects = data.get("defects_detected") or []
    if not isinstance(defects, list):
        defects = [defects]
    return {
        "title": str(data.get("title") or "Food donation").strip(),
        "description": str(data.get("description") or "").strip(),
        "quantity": str(data.get("quantity") or "").strip(),
        "category": category if category in FOOD_CATEGORIES else "other",
        "freshness_score": _score(data.get("freshness_score")),
        "quality_score": _score(data.get("quality_score")),
        "defects_detected": [str(d) for d in defects if d],
    }


def _to_float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _score(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(_clamp(round(float(value)), 0, 100))
    except (TypeError, ValueError, OverflowError):
        return None
