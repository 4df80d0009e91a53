"""
OpenAI Classifier - ClassificationPort implementation using OpenAI chat completions.

Sends extracted document text (or the image itself for scans) and asks for a
JSON object describing the identity document. Provider errors are mapped
onto the docintake error taxonomy so the validation queue can decide
whether to retry.
"""

import base64
import json
import logging
import time
from typing import Optional

from openai import OpenAI, APIError, RateLimitError, APIConnectionError, APITimeoutError, AuthenticationError

from ...domain.validation.classification import normalize_classification
from ...domain.validation.ports import ClassificationHints, ClassificationOutput, ClassificationPort
from ...errors import AuthError, PermanentClassificationError, ProviderTimeoutError, TransientProviderError
from ...observability.metrics import classification_calls_total
from .cost_calculator import CostCalculator

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"}

SYSTEM_PROMPT = """You classify identity and employment documents.
Return a JSON object with these fields:
- document_type: one of passport, drivers_license, id_card, birth_certificate, visa, other
- confidence: number between 0 and 1
- full_name_on_document: string or null
- extracted_names: array of every person name printed on the document
- dob_on_document: string (ISO date) or null
- issue_date: string (ISO date) or null
- expiry_date: string (ISO date) or null
- issuing_country: ISO 3166 alpha-2 code or null
- document_number: string or null

Return ONLY valid JSON, no markdown formatting."""


class OpenAIClassifier(ClassificationPort):
    """
    OpenAI implementation of ClassificationPort.

    Uses the OpenAI Python SDK (v1.x+) in JSON mode with temperature 0.

    Example:
        classifier = OpenAIClassifier(api_key=settings.OPENAI_API_KEY, model="gpt-4o-mini")
        output = classifier.classify(text, ClassificationHints(file_name="passport.pdf", mime_type="application/pdf"))
    """

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 30.0,
        max_text_chars: int = 12000,
        client: Optional[OpenAI] = None,
    ):
        """
        Initialize OpenAI classifier.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            timeout_seconds: Per-call timeout
            max_text_chars: Extracted text is truncated to this length
            client: Pre-built client (tests)

        Raises:
            ValueError: If API key is not provided
        """
        if not api_key and client is None:
            raise ValueError("OpenAI API key not provided. Set OPENAI_API_KEY environment variable.")

        self.client = client or OpenAI(api_key=api_key, max_retries=0)
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_text_chars = max_text_chars

    def build_messages(self, text: str, hints: ClassificationHints) -> list:
        context_lines = [f"Filename: {hints.file_name}"]
        if hints.requested_type:
            context_lines.append(f"Requested document type: {hints.requested_type}")

        if not text.strip() and hints.content and hints.mime_type in IMAGE_MIME_TYPES:
            b64_image = base64.b64encode(hints.content).decode("utf-8")
            user_content = [
                {"type": "text", "text": "\n".join(context_lines) + "\nClassify this document image:"},
                {"type": "image_url", "image_url": {"url": f"data:{hints.mime_type};base64,{b64_image}"}},
            ]
        else:
            body = text[: self.max_text_chars] if text else "(no text could be extracted)"
            user_content = "\n".join(context_lines) + f"\n\nDocument text:\n\n{body}"

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

    def classify(self, text: str, hints: ClassificationHints) -> ClassificationOutput:
        start_time = time.perf_counter()

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(text, hints),
                response_format={"type": "json_object"},
                temperature=0.0,
                timeout=self.timeout_seconds,
            )
        except APITimeoutError as e:
            classification_calls_total.labels(provider=self.provider, status="timeout").inc()
            raise ProviderTimeoutError(
                f"OpenAI API timeout after {self.timeout_seconds}s: {str(e)}",
                {"model": self.model},
            )
        except RateLimitError as e:
            classification_calls_total.labels(provider=self.provider, status="rate_limited").inc()
            raise TransientProviderError(f"OpenAI rate limit exceeded: {str(e)}", {"model": self.model})
        except AuthenticationError as e:
            classification_calls_total.labels(provider=self.provider, status="auth_error").inc()
            raise AuthError(f"OpenAI authentication failed: {str(e)}", {"model": self.model})
        except (APIConnectionError, APIError) as e:
            classification_calls_total.labels(provider=self.provider, status="error").inc()
            raise TransientProviderError(f"OpenAI service error: {str(e)}", {"model": self.model})

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        raw_output = response.choices[0].message.content if response.choices else None

        try:
            parsed = json.loads(raw_output or "")
        except json.JSONDecodeError as e:
            classification_calls_total.labels(provider=self.provider, status="invalid").inc()
            raise PermanentClassificationError(
                f"OpenAI returned invalid JSON: {str(e)}",
                {"model": self.model, "raw_output": (raw_output or "")[:500]},
            )

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else None
        completion_tokens = usage.completion_tokens if usage else None

        cost_micros = 0
        if prompt_tokens and completion_tokens:
            try:
                cost_micros = CostCalculator.calculate_cost_micros(
                    provider=self.provider,
                    model=self.model,
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                )
            except ValueError as e:
                logger.warning(f"Failed to calculate cost: {str(e)}")

        output = normalize_classification(
            parsed,
            provider=self.provider,
            model=self.model,
            tokens_in=prompt_tokens,
            tokens_out=completion_tokens,
            cost_micros=cost_micros,
            latency_ms=latency_ms,
        )
        classification_calls_total.labels(provider=self.provider, status="succeeded").inc()
        logger.info(
            f"Classified {hints.file_name} as {output.document_type} "
            f"(confidence={output.confidence:.2f}, latency={latency_ms}ms, tokens={prompt_tokens}/{completion_tokens})"
        )
        return output
