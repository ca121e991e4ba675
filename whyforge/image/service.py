"""Image-to-text collaborator used when question input is an image.

Processing flow:
    1. Validate the data URL (supported image MIME type, base64 marker, minimum
       length).
    2. Decode the base64 payload and open it with Pillow.
    3. Run best-effort OCR with pytesseract.
    4. If OCR produced meaningful text (> 10 chars), return it as
       `text_extraction`; otherwise describe the image from its metadata
       (format, size, dominant colour) as `image_description`.

Base64 handling:
    Payloads are decoded in memory; no temporary files are written. An
    approximate decoded-size check runs before decoding.

Error handling strategy:
    - Malformed payloads raise `ImageFormatError` (no retry).
    - OCR failures are logged and treated as "no text".

Performance characteristics:
    Decoding and OCR are blocking; `process_image` runs them in a worker thread.
"""

import asyncio
import base64
import binascii
import io
import logging
import re

import pytesseract
from PIL import Image, UnidentifiedImageError

from whyforge.core.errors import ImageFormatError
from whyforge.core.types import ImageProcessingResult


logger = logging.getLogger(__name__)


IMAGE_DATA_URL_RE = re.compile(r"^data:image/(jpeg|jpg|png|gif|webp);base64,")
MIN_DATA_URL_LENGTH = 100
MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024
MIN_EXTRACTED_TEXT_LENGTH = 10

TEXT_EXTRACTION_CONFIDENCE = 85
DESCRIPTION_CONFIDENCE = 80

# Reference colours for the dominant-colour description.
COLOUR_NAMES = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "grey": (128, 128, 128),
    "red": (200, 40, 40),
    "orange": (240, 150, 40),
    "yellow": (230, 220, 60),
    "green": (60, 160, 70),
    "blue": (50, 90, 200),
    "purple": (130, 60, 170),
    "pink": (240, 150, 190),
    "brown": (120, 80, 40),
}


def is_valid_image_data(image_data: str) -> bool:
    return (
        isinstance(image_data, str)
        and bool(IMAGE_DATA_URL_RE.match(image_data))
        and len(image_data) > MIN_DATA_URL_LENGTH
    )


def _closest_colour_name(rgb: tuple[int, int, int]) -> str:
    def distance(reference):
        return sum((a - b) ** 2 for a, b in zip(rgb, reference))

    return min(COLOUR_NAMES, key=lambda name: distance(COLOUR_NAMES[name]))


def _orientation(width: int, height: int) -> str:
    if width > height:
        return "landscape"
    if height > width:
        return "portrait"
    return "square"


class ImageProcessor:
    """Turn a base64 image data URL into text usable as question input."""

    def __init__(self, ocr=pytesseract.image_to_string) -> None:
        self._ocr = ocr

    async def process_image(self, image_data: str) -> ImageProcessingResult:
        """Validate, decode and analyse one image.

        Raises:
            ImageFormatError: payload is not a decodable image data URL.
        """
        if not is_valid_image_data(image_data):
            raise ImageFormatError("Invalid image data format")

        return await asyncio.to_thread(self._process_sync, image_data)

    async def batch_process(self, images: list[str]) -> list[ImageProcessingResult]:
        """Process images sequentially; failures are logged and skipped."""
        results = []
        for index, image_data in enumerate(images):
            try:
                results.append(await self.process_image(image_data))
            except ImageFormatError as err:
                logger.error("Failed to process image %d in batch: %s", index + 1, err)
        return results

    @staticmethod
    def to_question_input(result: ImageProcessingResult) -> str:
        return result.extracted_text or result.description

    def _process_sync(self, image_data: str) -> ImageProcessingResult:
        image = self._decode(image_data)

        text = self._extract_text(image)
        if len(text) > MIN_EXTRACTED_TEXT_LENGTH:
            return ImageProcessingResult(
                extracted_text=text,
                description=f"Image contains text: \"{text}\"",
                confidence_score=TEXT_EXTRACTION_CONFIDENCE,
                method="text_extraction",
            )

        return ImageProcessingResult(
            description=self._describe(image),
            confidence_score=DESCRIPTION_CONFIDENCE,
            method="image_description",
        )

    def _decode(self, image_data: str) -> Image.Image:
        _, encoded = image_data.split(",", 1)

        padding = len(encoded) - len(encoded.rstrip("="))
        approx_decoded_size = (len(encoded) * 3) // 4 - padding
        if approx_decoded_size > MAX_IMAGE_SIZE_BYTES:
            raise ImageFormatError("Image exceeds max size limit")

        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as err:
            raise ImageFormatError("Image payload is not valid base64") from err

        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, OSError) as err:
            raise ImageFormatError("Image payload could not be decoded") from err

        return image

    def _extract_text(self, image: Image.Image) -> str:
        try:
            text = self._ocr(image) or ""
        except Exception:
            logger.warning("OCR failed; falling back to image description", exc_info=True)
            return ""
        return " ".join(text.split())

    def _describe(self, image: Image.Image) -> str:
        width, height = image.size
        fmt = (image.format or "image").upper()
        dominant = image.convert("RGB").resize((1, 1)).getpixel((0, 0))
        colour = _closest_colour_name(dominant)
        return (
            f"A {_orientation(width, height)} {fmt} picture ({width}x{height} pixels) "
            f"dominated by {colour} tones"
        )
