"""
Image preprocessing for business card OCR.

Applies the enhancement hints in ``PreprocessOptions`` to raw image bytes.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from .errors import UnsupportedImageFormat
from .models import PreprocessOptions

logger = logging.getLogger(__name__)


class ImagePreprocessor:
    """OpenCV helpers shared by the OCR adapter."""

    @staticmethod
    def decode(image_bytes: bytes) -> np.ndarray:
        """Decode encoded image bytes into a BGR array.

        Raises:
            UnsupportedImageFormat: OpenCV cannot decode the bytes
        """
        buffer = np.frombuffer(image_bytes, dtype=np.uint8)
        img = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
        if img is None:
            raise UnsupportedImageFormat("Image bytes could not be decoded")
        return img

    @staticmethod
    def encode(img: np.ndarray, ext: str = ".png") -> bytes:
        ok, buffer = cv2.imencode(ext, img)
        if not ok:
            raise UnsupportedImageFormat(f"Could not encode image as {ext}")
        return buffer.tobytes()

    @staticmethod
    def apply(img: np.ndarray, options: Optional[PreprocessOptions]) -> np.ndarray:
        """
        Apply enhancement hints to a decoded image.

        Args:
            img: BGR or grayscale image
            options: Enhancement hints; None leaves the image untouched

        Returns:
            Enhanced image as numpy array
        """
        if options is None:
            return img

        # 1. Resize to the requested width
        if options.target_width:
            h, w = img.shape[:2]
            if w != options.target_width:
                scale = options.target_width / w
                interpolation = cv2.INTER_CUBIC if scale > 1 else cv2.INTER_AREA
                img = cv2.resize(img, (options.target_width, max(1, int(h * scale))), interpolation=interpolation)
                logger.debug(f"Resized from {w}x{h} to {img.shape[1]}x{img.shape[0]}")

        # 2. Grayscale
        if options.grayscale and img.ndim == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)

        # 3. Deskew
        if options.deskew:
            img = ImagePreprocessor.deskew_image(img)

        # 4. Denoise
        if options.denoise:
            if img.ndim == 2:
                img = cv2.fastNlMeansDenoising(img, None, h=8, templateWindowSize=7, searchWindowSize=21)
            else:
                img = cv2.fastNlMeansDenoisingColored(img, None, 8, 8, 7, 21)

        # 5. Contrast / brightness
        if options.contrast or options.brightness:
            alpha = 1.0 + max(-100.0, min(100.0, options.contrast)) / 100.0
            beta = max(-100.0, min(100.0, options.brightness))
            img = cv2.convertScaleAbs(img, alpha=alpha, beta=beta)

        # 6. Unsharp mask
        if options.sharpen:
            blurred = cv2.GaussianBlur(img, (0, 0), 1.0)
            img = cv2.addWeighted(img, 1.5, blurred, -0.5, 0)

        return img

    @staticmethod
    def deskew_image(image: np.ndarray) -> np.ndarray:
        """Deskew image if it's rotated (crooked card photo)."""
        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        edges = cv2.Canny(gray, 50, 150)

        contours = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        contours = contours[0] if len(contours) == 2 else contours[1]
        if len(contours) == 0:
            return image

        # Largest contour should be the card
        rect = cv2.minAreaRect(max(contours, key=cv2.contourArea))
        angle = rect[-1]
        if angle < -45:
            angle = -(90 + angle)
        elif angle > 45:
            angle = angle - 90
        else:
            angle = -angle

        if abs(angle) <= 1.0:
            return image

        (h, w) = image.shape[:2]
        M = cv2.getRotationMatrix2D((w // 2, h // 2), angle, 1.0)
        logger.debug(f"Deskewed image by {angle:.1f} degrees")
        return cv2.warpAffine(image, M, (w, h), flags=cv2.INTER_CUBIC, borderMode=cv2.BORDER_REPLICATE)
