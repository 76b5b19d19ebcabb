"""
Vision model client.

The vision model accepts a JPEG and returns free-form text that is expected
to embed one JSON object with detections. OpenAIVisionModel sends the image as
a base64 data URL alongside the marine biology analysis prompt.

No retries are performed here: quota consumption must stay predictable, so
retry policy belongs to the caller.
"""

import base64
import logging
from abc import ABC, abstractmethod

import openai

from reefscan.core.exceptions import ModelUnavailableError


logger = logging.getLogger(__name__)


ANALYSIS_PROMPT = """You are an expert marine biologist and computer vision specialist. \
Analyze this underwater photo and annotate the marine life in it.

ACCEPTABLE CONTENT:
- Only analyze marine life (fish, coral, sea creatures, underwater environments)
- If the image shows people, recognizable faces or non-marine subjects, explain why \
analysis cannot proceed instead of returning JSON

COORDINATES:
- Use RELATIVE coordinates from 0.000 to 1.000 with three decimal places, never pixels
- Origin (0.000, 0.000) is the TOP-LEFT corner; x grows to the right, y grows downwards
- x, y are the top-left corner of the bounding box; width, height its size
- The box must lie inside the image: x + width <= 1.000 and y + height <= 1.000

For each detected species provide the common name, the scientific name if known, a \
confidence between 0.000 and 1.000 with reasoning, a bounding box, a description of \
distinguishing features, behavioral notes, a size estimate, habitat context, interactions \
with other species, per-detection image quality and estimated characteristics \
(category Fishes|Creatures|Corals, size range, habitat, diet, behavior, danger level \
Low|Medium|High|Extreme, venomous, conservation status).

CONFIDENCE GUIDELINES:
- 0.900-1.000: clear, well-lit, distinctive species
- 0.700-0.899: good visibility with minor uncertainties
- 0.500-0.699: moderate visibility, some identification challenges
- 0.300-0.499: poor visibility or partial view
- 0.000-0.299: very uncertain

For organisms you cannot name, list them under unknownSpecies with a description, \
similar species and a bounding box.

Return JSON with this structure:
{
  "imageAnalysis": {
    "overallQuality": "excellent|good|fair|poor",
    "lightingConditions": "bright|moderate|dim|mixed",
    "waterClarity": "clear|moderate|turbid",
    "depthEstimate": "shallow|medium|deep",
    "habitatType": "reef|sand|seagrass|mixed"
  },
  "detections": [
    {
      "species": "Common Name",
      "scientificName": "Scientific Name",
      "confidence": 0.950,
      "confidenceReasoning": "Clear view, distinctive markings",
      "boundingBox": {"x": 0.200, "y": 0.300, "width": 0.150, "height": 0.120},
      "description": "Distinguishing features",
      "behavioralNotes": "Observed behavior",
      "sizeEstimate": "Small (5-10cm)|Medium (10-30cm)|Large (30cm+)",
      "habitatContext": "Position in reef structure",
      "interactions": "With other species",
      "imageQuality": "excellent|good|fair|poor",
      "estimatedCharacteristics": {
        "category": "Fishes|Creatures|Corals",
        "sizeRange": "small|medium|large",
        "habitatType": ["reef"],
        "diet": "carnivore|herbivore|omnivore|filter feeder",
        "behavior": "social|solitary|territorial|migratory",
        "dangerLevel": "Low|Medium|High|Extreme",
        "venomous": false,
        "conservationStatus": "common|rare|endangered"
      }
    }
  ],
  "unknownSpecies": [
    {
      "description": "Appearance description",
      "behavioralNotes": "Observed behavior",
      "sizeCharacteristics": "Relative size and shape",
      "colorPatterns": "Colors and markings",
      "habitatPosition": "Where in the image",
      "similarSpecies": ["Species A", "Species B"],
      "confidence": 0.200,
      "confidenceReasoning": "Partial view",
      "boundingBox": {"x": 0.500, "y": 0.600, "width": 0.100, "height": 0.080}
    }
  ],
  "annotationMetadata": {
    "totalDetections": 1,
    "identifiedSpecies": 1,
    "unknownSpecies": 1,
    "averageConfidence": 0.575,
    "annotationQuality": "high|medium|low",
    "processingNotes": "Special considerations"
  }
}

Prefer fewer high-confidence detections over many uncertain ones."""


class VisionModel(ABC):
    """Contract for the external vision model."""

    name: str = 'vision-model'

    @abstractmethod
    def analyze(self, image_bytes: bytes) -> str:
        """
        Analyze a JPEG and return the model's raw text.

        Raises:
            ModelUnavailableError: Transport or service failure
        """


class OpenAIVisionModel(VisionModel):
    """
    OpenAI chat completions vision client.

    The underlying client is created lazily so the service can start (and
    report itself unconfigured in /health) without an API key.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = 'gpt-4o',
        timeout: float = 30.0,
        max_tokens: int = 4096,
        prompt: str = ANALYSIS_PROMPT,
    ):
        self.api_key = api_key
        self.name = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.prompt = prompt
        self._client: openai.OpenAI | None = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> openai.OpenAI:
        if not self.api_key:
            raise ModelUnavailableError(self.name, 'OPENAI_API_KEY is not configured')
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self.api_key, timeout=self.timeout, max_retries=0
            )
            logger.info(f'OpenAI vision client ready (model={self.name})')
        return self._client

    def analyze(self, image_bytes: bytes) -> str:
        client = self._get_client()
        base64_image = base64.b64encode(image_bytes).decode('utf-8')

        try:
            response = client.chat.completions.create(
                model=self.name,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        'role': 'user',
                        'content': [
                            {'type': 'text', 'text': self.prompt},
                            {
                                'type': 'image_url',
                                'image_url': {'url': f'data:image/jpeg;base64,{base64_image}'},
                            },
                        ],
                    }
                ],
            )
        except openai.APIError as e:
            logger.error(f'Vision model call failed: {e}')
            raise ModelUnavailableError(self.name, str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ModelUnavailableError(self.name, 'empty response')
        return content
