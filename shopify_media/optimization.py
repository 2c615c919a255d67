"""
Optimization Estimate — How much smaller analyzed images could be.

Pure arithmetic over ImageRecords that have been through ImageAnalyzer.
Nothing is re-encoded; the numbers are conservative estimates:

  resize       Images larger than their profile's max box are scaled to fit.
               Savings scale with the pixel reduction (ratio squared).
  compression  A per-format expected ratio applied after the resize.
  format       PNGs over 500 KB get a WebP conversion suggestion (~40%).
"""

from typing import Any, Dict, List

from .image_analyzer import format_file_size
from .models import ImageRecord

MAX_DIMENSIONS = {
    "product": (2048, 2048),
    "collection": (1920, 1080),
    "banner": (2400, 1200),
    "thumbnail": (600, 600),
    "default": (1920, 1920),
}

COMPRESSION_RATIOS = {
    "JPG": 0.75,
    "JPEG": 0.75,
    "PNG": 0.85,
    "WEBP": 0.70,
    "AVIF": 0.60,
    "GIF": 0.90,
    "SVG": 0.95,
}
DEFAULT_COMPRESSION_RATIO = 0.80

WEBP_SUGGESTION_BYTES = 500000
WEBP_SAVINGS_RATIO = 0.4


def format_bytes(size: float) -> str:
    """Like format_file_size, but zero is a real amount here ("0 Bytes")."""
    return format_file_size(size) if size else "0 Bytes"


def estimate_savings(record: ImageRecord) -> Dict[str, Any]:
    original = record.size or 0
    width, height = record.width or 0, record.height or 0
    file_type = (record.type or "unknown").upper()

    if not (original and width and height):
        return {
            "originalSize": original,
            "estimatedOptimizedSize": original,
            "compressionSavings": 0,
            "resizeSavings": 0,
            "totalSavings": 0,
            "savingsPercent": 0,
            "newDimensions": {"width": width, "height": height},
            "needsResize": False,
            "recommendations": [],
        }

    max_width, max_height = MAX_DIMENSIONS.get(record.image_type or "default", MAX_DIMENSIONS["default"])
    ratio = 1.0
    new_width, new_height = width, height
    if width > max_width or height > max_height:
        ratio = min(max_width / width, max_height / height)
        new_width, new_height = round(width * ratio), round(height * ratio)

    resize_savings = original * (1 - ratio * ratio)
    after_resize = original - resize_savings
    compression_ratio = COMPRESSION_RATIOS.get(file_type, DEFAULT_COMPRESSION_RATIO)
    compression_savings = after_resize * (1 - compression_ratio)
    total = resize_savings + compression_savings

    recommendations = []
    if resize_savings > 0:
        recommendations.append({
            "type": "resize",
            "description": f"Resize from {width}x{height} to {new_width}x{new_height}",
            "savings": round(resize_savings),
            "savingsPercent": round(resize_savings / original * 100),
        })
    if compression_savings > 0:
        recommendations.append({
            "type": "compression",
            "description": f"Apply lossless compression to {file_type}",
            "savings": round(compression_savings),
            "savingsPercent": round(compression_savings / original * 100),
        })
    if file_type == "PNG" and original > WEBP_SUGGESTION_BYTES:
        webp_savings = original * WEBP_SAVINGS_RATIO
        recommendations.append({
            "type": "format",
            "description": "Convert PNG to WebP format",
            "savings": round(webp_savings),
            "savingsPercent": round(WEBP_SAVINGS_RATIO * 100),
        })

    return {
        "originalSize": original,
        "estimatedOptimizedSize": round(after_resize - compression_savings),
        "compressionSavings": round(compression_savings),
        "resizeSavings": round(resize_savings),
        "totalSavings": round(total),
        "savingsPercent": round(total / original * 100),
        "newDimensions": {"width": new_width, "height": new_height},
        "needsResize": ratio < 1,
        "compressionRatio": compression_ratio,
        "recommendations": recommendations,
    }


def summarize_savings(records: List[ImageRecord]) -> Dict[str, Any]:
    estimates = [estimate_savings(record) for record in records]
    original = sum(e["originalSize"] for e in estimates)
    optimized = sum(e["estimatedOptimizedSize"] for e in estimates)
    compression = sum(e["compressionSavings"] for e in estimates)
    resize = sum(e["resizeSavings"] for e in estimates)
    total = compression + resize
    return {
        "totalImages": len(records),
        "optimizableImages": sum(1 for e in estimates if e["totalSavings"] > 0),
        "resizableImages": sum(1 for e in estimates if e["needsResize"]),
        "totalOriginalSize": original,
        "totalOptimizedSize": optimized,
        "totalSavings": total,
        "totalSavingsPercent": round(total / original * 100) if original else 0,
        "compressionSavings": compression,
        "resizeSavings": resize,
        "formattedOriginalSize": format_bytes(original),
        "formattedOptimizedSize": format_bytes(optimized),
        "formattedSavings": format_bytes(total),
    }
