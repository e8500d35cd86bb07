import os
import sys
import io
import base64
import threading
from contextlib import contextmanager
from typing import List, Dict, Iterator, Optional
from PIL import Image
import numpy as np

# ============================================================================
# Configuration
# ============================================================================

# Environment variables (can be set via os.environ)
ML_VISION_ENABLED = os.getenv("ML_VISION_ENABLED", "true").lower() == "true"
CLASSIFIER_MODEL = os.getenv("CLASSIFIER_MODEL", "google/mobilenet_v2_1.0_224")
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

INPUT_SIZE = 224
TOP_K = 3

# ============================================================================
# Global Model Variables
# ============================================================================

_classifier_loaded = False
_classifier_model = None
_classifier_processor = None
_load_lock = threading.Lock()

# ============================================================================
# Model Loading
# ============================================================================

def load_classifier() -> bool:
    """Load the image classifier once per process. Safe to call repeatedly."""
    global _classifier_loaded, _classifier_model, _classifier_processor

    if _classifier_loaded:
        return True

    with _load_lock:
        if _classifier_loaded:
            return True

        if not ML_VISION_ENABLED:
            print("⚠️  Image classification is disabled (ML_VISION_ENABLED=false)")
            return False

        print(f"🔄 Loading image classifier ({CLASSIFIER_MODEL})...")
        try:
            from transformers import AutoImageProcessor, AutoModelForImageClassification
            _classifier_processor = AutoImageProcessor.from_pretrained(CLASSIFIER_MODEL)
            _classifier_model = AutoModelForImageClassification.from_pretrained(CLASSIFIER_MODEL)
            _classifier_model.eval()
        except Exception as e:
            print(f"⚠️  Warning: image classifier not available: {e}")
            _classifier_model = None
            _classifier_processor = None
            return False

        _classifier_loaded = True
        print("✅ Image classifier loaded")
        return True


def is_classifier_loaded() -> bool:
    return _classifier_loaded

# ============================================================================
# Image Decoding
# ============================================================================

def decode_data_uri(data_uri: str) -> bytes:
    """Return the raw bytes of a base64 `data:` URI."""
    if not data_uri or not data_uri.startswith("data:"):
        raise ValueError("Photo must be a data: URI")
    header, sep, payload = data_uri.partition(",")
    if not sep or not header.endswith(";base64"):
        raise ValueError("Photo data URI must be base64 encoded")
    return base64.b64decode(payload, validate=True)


@contextmanager
def pixel_buffer(img_bytes: bytes, size: int = INPUT_SIZE) -> Iterator[np.ndarray]:
    """
    Decode an image into a (size, size, 3) float32 pixel array.
    The decoded images are closed when the block exits, whatever the outcome.
    """
    img = Image.open(io.BytesIO(img_bytes))
    try:
        rgb = img.convert("RGB")
        try:
            resized = rgb.resize((size, size), Image.Resampling.NEAREST)
            try:
                pixels = np.asarray(resized, dtype=np.float32)
                yield pixels
            finally:
                resized.close()
        finally:
            rgb.close()
    finally:
        img.close()

# ============================================================================
# Classification
# ============================================================================

def classify_pixels(pixels: np.ndarray, top_k: int = TOP_K) -> List[Dict]:
    """
    Rank ImageNet labels for a pixel array.

    Returns:
        list of {"label": str, "confidence": float}, best first
    """
    if not load_classifier():
        raise RuntimeError("Image classifier is not available")

    import torch

    # pixels are already 224x224; only rescale and normalize
    inputs = _classifier_processor(
        images=pixels, do_resize=False, do_center_crop=False, return_tensors="pt"
    )
    try:
        with torch.inference_mode():
            logits = _classifier_model(**inputs).logits
        probs = logits.softmax(dim=-1)[0]
        k = min(top_k, probs.shape[-1])
        scores, indices = torch.topk(probs, k)
        labels = _classifier_model.config.id2label
        predictions = [
            {"label": labels[int(idx)], "confidence": float(score)}
            for score, idx in zip(scores, indices)
        ]
    finally:
        del inputs

    if VERBOSE_LOGGING:
        print(f"   Predictions: {predictions}")
    return predictions


def top_label(predictions: Optional[List[Dict]]) -> str:
    """Label of the best prediction, or "Unknown" for an empty list."""
    if predictions:
        return predictions[0].get("label") or "Unknown"
    return "Unknown"

# ============================================================================
# Main Entry Point
# ============================================================================

def main():
    """Classify a photo file from the command line"""
    if len(sys.argv) < 2:
        print("Usage: python image_classifier.py <image_path>")
        sys.exit(1)

    image_path = sys.argv[1]

    if not os.path.exists(image_path):
        print(f"Error: Image file not found: {image_path}")
        sys.exit(1)

    with open(image_path, 'rb') as f:
        img_bytes = f.read()

    print(f"🔍 Classifying image: {image_path}")
    with pixel_buffer(img_bytes) as pixels:
        predictions = classify_pixels(pixels)

    print(f"\n✅ Top label: {top_label(predictions)}")
    for i, prediction in enumerate(predictions, 1):
        print(f"{i}. {prediction['label']}  ({prediction['confidence']:.2%})")

if __name__ == "__main__":
    main()
