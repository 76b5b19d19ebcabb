"""
Vision model response parser.

The model is asked for JSON but answers in free text: the JSON may be wrapped
in prose or markdown fences, fields may be missing or mistyped. The parser
takes the span from the first '{' to the last '}', decodes it and reads every
field with an explicit default. Nothing is ever invented: if no JSON can be
decoded the response is rejected with DetectionParseError.
"""

import logging
import math
import re
from typing import Any

import orjson

from reefscan.core.exceptions import ContentRefusedError, DetectionParseError
from reefscan.schemas.detection import (
    AnnotationMetadata,
    Detection,
    DetectionInstance,
    ImageAnalysis,
    ParsedAnalysis,
    UnknownSpecies,
)
from reefscan.utils.boxes import normalize_bounding_box


logger = logging.getLogger(__name__)

JSON_SPAN = re.compile(r'\{[\s\S]*\}')

REFUSAL_PHRASES = (
    'unable to analyze',
    'privacy and policy reasons',
    'recognizable individuals',
    'policy reasons',
    'cannot analyze',
    'unable to provide',
    'due to privacy',
    'policy restrictions',
    'not appropriate',
    'cannot process',
)

# Model keys kept verbatim in Detection.attributes (camelCase -> snake_case)
DETECTION_ATTRIBUTES = {
    'description': 'description',
    'confidenceReasoning': 'confidence_reasoning',
    'behavioralNotes': 'behavioral_notes',
    'sizeEstimate': 'size_estimate',
    'habitatContext': 'habitat_context',
    'interactions': 'interactions',
    'imageQuality': 'image_quality',
    'estimatedCharacteristics': 'estimated_characteristics',
}

UNKNOWN_ATTRIBUTES = {
    'behavioralNotes': 'behavioral_notes',
    'sizeCharacteristics': 'size_characteristics',
    'colorPatterns': 'color_patterns',
    'habitatPosition': 'habitat_position',
    'confidenceReasoning': 'confidence_reasoning',
}


# =============================================================================
# Field Helpers
# =============================================================================
def clamp_confidence(value: Any) -> float:
    """Confidence in [0, 1]; missing or unparseable values become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(max(number, 0.0), 1.0)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _pick(raw: dict, mapping: dict[str, str]) -> dict[str, Any]:
    return {
        target: raw[source] for source, target in mapping.items() if raw.get(source) is not None
    }


def is_refusal(text: str) -> bool:
    """True when the text reads as a content policy refusal."""
    lowered = text.lower()
    return any(phrase in lowered for phrase in REFUSAL_PHRASES)


# =============================================================================
# Parser
# =============================================================================
class DetectionParser:
    """Turns raw vision model text into a ParsedAnalysis."""

    def parse(self, raw_text: str) -> ParsedAnalysis:
        """
        Parse one model response.

        Args:
            raw_text: Raw text returned by the vision model

        Returns:
            ParsedAnalysis with detections, unknown species and optional
            image/annotation metadata

        Raises:
            ContentRefusedError: No JSON and the text is a policy refusal
            DetectionParseError: No JSON span, or the span does not decode to an object
        """
        payload = self.extract_payload(raw_text or '')

        detections = [
            self.parse_detection(item)
            for item in _as_list(payload.get('detections'))
            if isinstance(item, dict)
        ]
        unknown_species = [
            self.parse_unknown(item, raw_text)
            for item in _as_list(payload.get('unknownSpecies'))
            if isinstance(item, dict)
        ]

        return ParsedAnalysis(
            detections=detections,
            unknown_species=unknown_species,
            image_analysis=self.parse_image_analysis(payload.get('imageAnalysis')),
            annotation_metadata=self.parse_annotation_metadata(payload.get('annotationMetadata')),
        )

    def extract_payload(self, raw_text: str) -> dict:
        """Decode the first-'{'-to-last-'}' span of the text."""
        match = JSON_SPAN.search(raw_text)
        if match is None:
            if is_refusal(raw_text):
                logger.warning('Vision model refused to analyze the image')
                raise ContentRefusedError(raw_text)
            logger.warning(f'No JSON object in vision model response ({len(raw_text)} chars)')
            raise DetectionParseError('no JSON object found', raw_text)

        try:
            payload = orjson.loads(match.group(0))
        except orjson.JSONDecodeError as e:
            logger.warning(f'Malformed JSON in vision model response: {e}')
            raise DetectionParseError(f'malformed JSON ({e})', raw_text) from e

        if not isinstance(payload, dict):
            raise DetectionParseError('top-level JSON value is not an object', raw_text)
        return payload

    def parse_detection(self, raw: dict) -> Detection:
        """Build a single-instance Detection from one raw entry."""
        confidence = clamp_confidence(raw.get('confidence'))
        box = normalize_bounding_box(raw.get('boundingBox'))

        return Detection(
            species=_text(raw.get('species')) or 'Unknown',
            scientific_name=_text(raw.get('scientificName')),
            confidence=confidence,
            instances=[DetectionInstance(bounding_box=box, confidence=confidence)],
            attributes=_pick(raw, DETECTION_ATTRIBUTES),
        )

    def parse_unknown(self, raw: dict, raw_text: str) -> UnknownSpecies:
        """Build an UnknownSpecies entry, keeping the model text as evidence."""
        return UnknownSpecies(
            description=_text(raw.get('description')) or 'Unknown species',
            confidence=clamp_confidence(raw.get('confidence')),
            bounding_box=normalize_bounding_box(raw.get('boundingBox')),
            similar_species=[str(s) for s in _as_list(raw.get('similarSpecies')) if s],
            attributes=_pick(raw, UNKNOWN_ATTRIBUTES),
            raw_response=raw_text,
        )

    def parse_image_analysis(self, raw: Any) -> ImageAnalysis | None:
        if not isinstance(raw, dict):
            return None
        defaults = ImageAnalysis()
        return ImageAnalysis(
            overall_quality=_text(raw.get('overallQuality')) or defaults.overall_quality,
            lighting_conditions=_text(raw.get('lightingConditions'))
            or defaults.lighting_conditions,
            water_clarity=_text(raw.get('waterClarity')) or defaults.water_clarity,
            depth_estimate=_text(raw.get('depthEstimate')) or defaults.depth_estimate,
            habitat_type=_text(raw.get('habitatType')) or defaults.habitat_type,
        )

    def parse_annotation_metadata(self, raw: Any) -> AnnotationMetadata | None:
        if not isinstance(raw, dict):
            return None
        return AnnotationMetadata(
            total_detections=_int(raw.get('totalDetections')),
            identified_species=_int(raw.get('identifiedSpecies')),
            unknown_species=_int(raw.get('unknownSpecies')),
            average_confidence=clamp_confidence(raw.get('averageConfidence')),
            annotation_quality=_text(raw.get('annotationQuality')) or 'medium',
            processing_notes=_text(raw.get('processingNotes')) or '',
        )
