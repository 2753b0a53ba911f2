"""Acne detection through Gemini: request building and response normalization."""

from __future__ import annotations

import hashlib
import json
import logging
import numbers
import time
from typing import Any, Protocol
from uuid import uuid4

from dermascan.analysis.models import AnalysisResult, BoundingBox, Finding, ImageRef
from dermascan.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"

PROMPT = """\
Analyze this facial image for acne.
1. Detect all visible acne lesions.
2. For each lesion, identify its type, severity (0-100), treatment suggestion, and location.
3. Provide a bounding box [ymin, xmin, ymax, xmax] (0-1000 scale) for each lesion if possible.
4. Provide an overall severity score (0-100) and a summary.
Return the result in JSON format matching the schema."""

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "overallScore": {
            "type": "NUMBER",
            "description": "Overall facial skin condition severity rating from 0 (clear skin) to 100 (severe acne).",
        },
        "summary": {
            "type": "STRING",
            "description": "A concise review summarizing the face's overall acne condition.",
        },
        "lesions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "location": {"type": "STRING", "description": "Approximate location (e.g., Forehead, center)"},
                    "type": {"type": "STRING", "description": "Type of acne (e.g., Pustule, Blackhead, Cyst)"},
                    "severity": {"type": "NUMBER", "description": "Severity rating 0-100 for this specific lesion"},
                    "suggestion": {"type": "STRING", "description": "Treatment suggestion"},
                    "box_2d": {
                        "type": "ARRAY",
                        "items": {"type": "NUMBER"},
                        "description": "Bounding box [ymin, xmin, ymax, xmax] on a 0-1000 scale.",
                    },
                },
                "required": ["location", "type", "severity", "suggestion"],
            },
        },
    },
    "required": ["overallScore", "summary", "lesions"],
}

REQUIRED_FIELDS = ("overallScore", "summary", "lesions")


class InferenceError(RuntimeError):
    """Any failure of the inference collaborator: transport, empty answer or unusable JSON."""


class InferenceClient(Protocol):
    def analyze(self, image: ImageRef) -> AnalysisResult: ...


def _hash_prompt(prompt: str) -> str:
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class GeminiInferenceClient:
    """Single-shot Gemini call. No retry: the user re-triggers the analysis."""

    PROVIDER = "google-gemini"

    def __init__(self) -> None:
        self.api_key = settings.GEMINI_API_KEY
        self.model = settings.GEMINI_MODEL
        self.temperature = settings.GEMINI_TEMPERATURE
        self.timeout = settings.GEMINI_TIMEOUT_SECONDS

    def analyze(self, image: ImageRef) -> AnalysisResult:
        if not self.api_key:
            logger.warning("Gemini API key missing; cannot analyze %s", image.filename)
            raise InferenceError("Gemini API key is not configured.")

        prompt_hash = _hash_prompt(PROMPT)
        start_time = time.perf_counter()
        logger.debug("Submitting %s (%s bytes) to %s (hash=%s)", image.filename, image.size_bytes, self.model, prompt_hash)

        text = self._call_gemini(image, PROMPT)
        if not text:
            raise InferenceError("No response text received from Gemini.")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InferenceError(f"Gemini response is not valid JSON: {exc}") from exc

        result = parse_analysis_payload(payload)
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Gemini analysis finished for %s (findings=%s, score=%s, duration_ms=%s)",
            image.filename,
            len(result.findings),
            result.overall_score,
            duration_ms,
        )
        return result

    def _call_gemini(self, image: ImageRef, prompt: str) -> str:
        try:
            import google.generativeai as genai  # type: ignore
        except ImportError as exc:
            raise InferenceError(
                "google-generativeai is not installed. Add the 'google-generativeai' dependency."
            ) from exc

        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(
            model_name=self.model,
            generation_config={
                "temperature": self.temperature,
                "response_mime_type": "application/json",
                "response_schema": RESPONSE_SCHEMA,
            },
        )

        parts: list[Any] = [
            {"inline_data": {"mime_type": image.content_type or DEFAULT_MIME_TYPE, "data": image.data}},
            {"text": prompt},
        ]

        try:
            response = model.generate_content(
                [{"role": "user", "parts": parts}],
                request_options={"timeout": self.timeout},
            )
        except Exception as exc:  # noqa: BLE001 - SDK raises many transport error types
            raise InferenceError(f"Gemini call failed: {exc}") from exc

        try:
            text = response.text
        except ValueError:
            # Blocked or empty candidates: rebuild from the parts that exist.
            text = ""
        if text:
            return text
        candidates = getattr(response, "candidates", None)
        if candidates:
            candidate_content = getattr(candidates[0], "content", None)
            candidate_parts = getattr(candidate_content, "parts", []) if candidate_content else []
            texts = [getattr(part, "text", "") for part in candidate_parts if getattr(part, "text", "")]
            return "\n".join(texts)
        return ""


def _parse_box(raw: Any) -> BoundingBox | None:
    if not isinstance(raw, (list, tuple)) or len(raw) != 4:
        return None
    if not all(_is_number(value) for value in raw):
        return None
    top, left, bottom, right = (float(value) for value in raw)
    return BoundingBox(top=top, left=left, bottom=bottom, right=right)


def parse_analysis_payload(payload: Any, token: str | None = None) -> AnalysisResult:
    """
    Turn the model's JSON document into an AnalysisResult.

    Only the top-level keys are required. Lesion fields fall back to empty
    values, a malformed box is dropped, and every lesion gets a local id.
    """
    if not isinstance(payload, dict):
        raise InferenceError("Gemini response is not a JSON object.")
    missing = [key for key in REQUIRED_FIELDS if key not in payload]
    if missing:
        raise InferenceError(f"Gemini response is missing fields: {', '.join(missing)}")

    overall = payload["overallScore"]
    if not _is_number(overall):
        raise InferenceError(f"Gemini overallScore is not a number: {overall!r}")
    lesions = payload["lesions"]
    if not isinstance(lesions, list):
        raise InferenceError("Gemini lesions field is not a list.")

    token = token or uuid4().hex[:12]
    findings: list[Finding] = []
    for index, lesion in enumerate(lesions):
        if not isinstance(lesion, dict):
            logger.warning("Skipping lesion %s: expected an object, got %s", index, type(lesion).__name__)
            continue
        severity = lesion.get("severity")
        findings.append(
            Finding(
                id=f"lesion-{index}-{token}",
                location=str(lesion.get("location") or ""),
                category=str(lesion.get("type") or ""),
                severity_score=float(severity) if _is_number(severity) else 0.0,
                suggestion=str(lesion.get("suggestion") or ""),
                bounding_box=_parse_box(lesion.get("box_2d")),
            )
        )

    return AnalysisResult(
        overall_score=float(overall),
        summary=str(payload.get("summary") or ""),
        findings=tuple(findings),
    )
