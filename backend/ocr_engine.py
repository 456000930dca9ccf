import logging
from io import BytesIO

from core.documents import ExtractedText, quality_for

logger = logging.getLogger(__name__)


class OCREngine:
    def __init__(self, lang: str = "en"):
        # paddleocr is the optional "ocr" extra; importing it loads the model stack
        from paddleocr import PaddleOCR

        logger.info("Loading PaddleOCR model (lang=%s)...", lang)
        # use_angle_cls=True enables orientation correction
        self.ocr = PaddleOCR(use_angle_cls=True, lang=lang, show_log=False)

    @staticmethod
    def _to_array(image_bytes: bytes):
        import numpy as np
        from PIL import Image

        img = Image.open(BytesIO(image_bytes)).convert("RGB")
        return np.array(img)

    def extract_text(self, image_bytes: bytes) -> ExtractedText:
        """
        Image bytes -> ExtractedText. Confidence is the mean line score (0-100).
        Any OCR failure yields empty text with confidence 0.
        """
        try:
            result = self.ocr.ocr(self._to_array(image_bytes), cls=True)

            # Result structure: [[[[x1,y1],[x2,y2]...], ("text", confidence)], ...]
            lines: list[str] = []
            scores: list[float] = []
            if result and result[0]:
                for line in result[0]:
                    text, score = line[1][0], line[1][1]
                    lines.append(text)
                    scores.append(float(score))
        except Exception as e:
            logger.warning("OCR failed: %s", e)
            return ExtractedText(text="", processing_method="ocr", confidence=0, quality="low")

        confidence = round(sum(scores) / len(scores) * 100, 1) if scores else 0
        logger.info("OCR lines=%d confidence=%s", len(lines), confidence)
        return ExtractedText(
            text="\n".join(lines),
            processing_method="ocr",
            confidence=confidence,
            quality=quality_for(confidence),
        )
