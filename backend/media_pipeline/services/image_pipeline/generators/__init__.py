from .image_derivative_generator import (
    ImageDerivativeGenerator,
    best_format,
    format_quality,
)

__all__ = [
    "ImageDerivativeGenerator",
    "best_format",
    "format_quality",
]
