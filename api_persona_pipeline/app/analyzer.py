"""
Core orchestration / pipeline.

Flow:
1. Validate the request (input and type present, type allowed)
2. Single backend call that generates the free-text analysis
   - On any BackendError: use the rule-based mock instead
3. Parse the text into a Persona (never fails, degrades to defaults)
4. Assemble the AnalysisResult with timing and provenance metadata
"""

import logging
import time
from typing import Any, Dict

from .config import Settings
from .llm_client import BackendError, OllamaClient
from .mock import mock_analysis
from .parser import parse_persona
from .schemas import AnalysisRequest, AnalysisResult
from .utils import elapsed_ms, new_analysis_id, utc_now

logger = logging.getLogger(__name__)

VALID_TYPES = ("endpoint", "openapi_url", "openapi_spec")
MOCK_MODEL = "mock"


class ValidationError(Exception):
    """The request violates the input contract; reported as a client error."""


class MissingFieldError(ValidationError):
    pass


class InvalidTypeError(ValidationError):
    pass


class InternalError(Exception):
    """Unexpected failure while assembling a result."""


def validate_request(request: AnalysisRequest) -> None:
    if not request.input or not request.type:
        raise MissingFieldError("Missing required fields: input and type")
    if request.type not in VALID_TYPES:
        raise InvalidTypeError(f"Invalid type. Must be one of: {', '.join(VALID_TYPES)}")


class Analyzer:
    """
    Runs one analysis per call. Holds only configuration and the backend
    client, so a single instance can serve concurrent requests.
    """

    def __init__(self, client: OllamaClient, settings: Settings):
        self.client = client
        self.settings = settings

    def _generate(self, input_text: str, input_type: str, options: Dict[str, Any]):
        """Raw analysis text, the model that produced it and its confidence."""
        try:
            logger.info("Attempting AI analysis...")
            text = self.client.generate(input_text, input_type, options)
            model = self.client.resolve_model(options)
            logger.info(f"AI analysis completed successfully with {model}")
            return text, model, self.settings.live_confidence
        except BackendError as e:
            logger.error(f"AI analysis failed: {e}")
            logger.info("Using mock analysis")
            return mock_analysis(input_text, input_type), MOCK_MODEL, self.settings.mock_confidence

    def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Main analysis pipeline.

        Raises:
            ValidationError: input/type missing or type not allowed
            InternalError: anything unexpected after validation
        """
        validate_request(request)
        logger.info(f"Starting analysis for {request.type}: {request.input}")

        options: Dict[str, Any] = request.options or {}
        start = time.perf_counter()

        try:
            raw_text, model_used, confidence = self._generate(request.input, request.type, options)
            persona = parse_persona(raw_text, request.input, request.type)

            result = AnalysisResult(
                id=new_analysis_id(),
                input=request.input,
                input_type=request.type,
                raw_model_output=raw_text,
                persona=persona,
                confidence_score=confidence,
                model_used=model_used,
                processing_time_ms=elapsed_ms(start),
                created_at=utc_now(),
            )
        except Exception as e:
            logger.exception("Analysis failed")
            raise InternalError(str(e)) from e

        logger.info(f"Analysis completed with {model_used}, confidence: {confidence}")
        return result
