"""Mock vision provider for development and testing."""
import asyncio
import random
import time

import structlog

from .base import (
    AnalysisResult,
    AnalysisType,
    BoundingBox,
    DetectionConditions,
    Face,
    FaceDetectionResult,
    ProviderAdapter,
    ProviderID,
    ProviderStatus,
    Tag,
)

logger = structlog.get_logger()

MOCK_TAGS = {
    AnalysisType.SCENE: [("beach", "landscape"), ("sunset", "landscape"), ("family", "people")],
    AnalysisType.OBJECT: [("person", "people"), ("dog", "animal"), ("cake", "food")],
    AnalysisType.TEXT: [("Happy Birthday", "text")],
    AnalysisType.SENTIMENT: [("joy", "emotion")],
    AnalysisType.FACE: [("face", "face")],
}


class MockProvider(ProviderAdapter):
    """Mock provider that returns canned or scripted results.

    Useful for:
    - Development without vendor credentials
    - Testing failover behaviour with scripted outcomes
    - CI/CD environments

    Outcomes can be scripted per call: pass `results` (consumed in order,
    the last one repeats) where each entry is a result object to return,
    an exception to raise, or None for a generated result.
    """

    def __init__(
        self,
        provider_id: ProviderID,
        status: ProviderStatus = ProviderStatus.AVAILABLE,
        results: list | None = None,
        confidence: float = 0.99,
        delay: float = 0.0,
    ):
        """Initialize mock provider.

        Args:
            provider_id: Which vendor this mock stands in for.
            status: Status reported by get_status().
            results: Scripted outcomes, see class docstring.
            confidence: Confidence of generated results.
            delay: Seconds each call takes.
        """
        self.provider_id = ProviderID(provider_id)
        self.status = status
        self.results = list(results or [])
        self.confidence = confidence
        self.delay = delay
        self.calls: list[tuple[str, AnalysisType | None]] = []
        self.status_calls = 0
        logger.info("mock_provider_initialized", provider=self.provider_id.value)

    def _next_outcome(self):
        if not self.results:
            return None
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    async def _run(self, operation: str, analysis_type: AnalysisType | None):
        self.calls.append((operation, analysis_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self._next_outcome()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def analyze(self, image: bytes, analysis_type: AnalysisType) -> AnalysisResult:
        """Return a mock analysis result."""
        started = time.perf_counter()
        analysis_type = AnalysisType(analysis_type)
        outcome = await self._run("analyze", analysis_type)
        if outcome is not None:
            return outcome

        tags = [
            Tag(tag=name, confidence=self.confidence, category=category)
            for name, category in MOCK_TAGS[analysis_type]
        ]
        return AnalysisResult(
            provider=self.provider_id,
            tags=tags,
            confidence=self.confidence,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            metadata={"mock": True, "size": len(image)},
        )

    async def detect_faces(self, image: bytes) -> FaceDetectionResult:
        """Return a mock face detection result."""
        started = time.perf_counter()
        outcome = await self._run("detect_faces", None)
        if outcome is not None:
            return outcome

        faces = [
            Face(
                bounding_box=BoundingBox(
                    x=round(random.uniform(0.0, 0.5), 3),
                    y=round(random.uniform(0.0, 0.5), 3),
                    width=0.2,
                    height=0.25,
                ),
                confidence=self.confidence,
            )
        ]
        return FaceDetectionResult(
            provider=self.provider_id,
            faces=faces,
            confidence=self.confidence,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            confidence_threshold=self.confidence,
            detection_conditions=DetectionConditions("good", "frontal", "high"),
            metadata={"mock": True, "size": len(image)},
        )

    async def get_status(self) -> ProviderStatus:
        """Return the configured status."""
        self.status_calls += 1
        return self.status

    @property
    def analysis_calls(self) -> int:
        return len(self.calls)
