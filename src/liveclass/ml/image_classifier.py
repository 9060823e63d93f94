"""Image classification model interface.

Implementations take an HxWx3 RGB uint8 array and return ranked tags.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray


@dataclass(frozen=True)
class ClassificationResult:
    """A single classification prediction."""

    label: str
    confidence: float


class ImageClassifier(Protocol):
    """Protocol for image classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def classify(self, image: NDArray[np.uint8]) -> list[ClassificationResult]:
        """Classify an image and return ranked tags.

        Args:
            image: HxWx3 RGB uint8 array.

        Returns:
            List of classification results sorted by confidence (descending).

        Raises:
            InferenceError: If the model invocation fails.
        """
        ...
