"""ONNX-based image classifier."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import numpy as np

from liveclass.exceptions import InferenceError, ModelLoadError
from liveclass.ml.image_classifier import ClassificationResult
from liveclass.ml.preprocessing import TensorLayout, softmax, to_input_tensor

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

    from liveclass.config import Settings
    from liveclass.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)


def load_labels(path: Path) -> list[str]:
    """Read one label per line, ignoring blank lines.

    Raises:
        ModelLoadError: If the file is missing or holds no labels.
    """
    if not path.is_file():
        raise ModelLoadError(f"Labels file not found: {path}")
    labels = [line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    if not labels:
        raise ModelLoadError(f"Labels file is empty: {path}")
    return labels


def _resolve_input(shape: list[object], default_size: int) -> tuple[TensorLayout, tuple[int, int]]:
    """Work out the tensor layout and (width, height) from an input shape.

    Symbolic dimensions fall back to ``default_size``.
    """
    if len(shape) != 4:
        raise ModelLoadError(f"Expected a 4-D image input, got shape {shape}")

    def dim(value: object) -> int:
        return value if isinstance(value, int) and value > 0 else default_size

    if shape[1] == 3:
        return "nchw", (dim(shape[3]), dim(shape[2]))
    if shape[3] == 3:
        return "nhwc", (dim(shape[2]), dim(shape[1]))
    raise ModelLoadError(f"Cannot find a 3-channel axis in input shape {shape}")


class OnnxImageClassifier:
    """Run a single-image classifier with an ONNX session.

    The session and labels are loaded and validated once at construction.
    Input images are resized to the model's input size and normalized with
    the configured mean/std.

    Args:
        session: Loaded ONNX Runtime session.
        labels: Class names indexed by model output position.
        model_name: Identifier reported in health output.
        input_size: Side length used when the model input has symbolic dims.
        mean: Per-channel normalization mean.
        std: Per-channel normalization std.
        output_activation: ``"softmax"`` for logit outputs, ``"none"`` when
            the model already emits probabilities.
        top_k: Number of ranked results to return.
    """

    def __init__(
        self,
        session: InferenceSession,
        labels: list[str],
        *,
        model_name: str = "classifier",
        input_size: int = 224,
        mean: tuple[float, float, float] = (0.485, 0.456, 0.406),
        std: tuple[float, float, float] = (0.229, 0.224, 0.225),
        output_activation: Literal["softmax", "none"] = "softmax",
        top_k: int = 5,
    ) -> None:
        self._session = session
        self._labels = list(labels)
        self._model_name = model_name
        self._mean = mean
        self._std = std
        self._activation = output_activation
        self._top_k = top_k

        inputs = session.get_inputs()
        outputs = session.get_outputs()
        if not inputs or not outputs:
            raise ModelLoadError(f"Model {model_name} has no inputs or outputs")
        self._input_name = inputs[0].name
        self._layout, self._input_size = _resolve_input(list(inputs[0].shape), input_size)

        classes = outputs[0].shape[-1] if outputs[0].shape else None
        if isinstance(classes, int) and classes != len(self._labels):
            raise ModelLoadError(
                f"Model {model_name} outputs {classes} classes but {len(self._labels)} labels were given"
            )

    @classmethod
    def from_settings(cls, settings: Settings, model_manager: ModelManager) -> OnnxImageClassifier:
        """Load the configured model and labels.

        Raises:
            ModelLoadError: If either file is missing or the model is malformed.
        """
        session = model_manager.load_session(settings.model_path)
        labels = load_labels(settings.resolved_labels_path())
        classifier = cls(
            session,
            labels,
            model_name=settings.model_path.stem,
            input_size=settings.input_size,
            mean=settings.mean,
            std=settings.std,
            output_activation=settings.output_activation,
            top_k=settings.top_k,
        )
        logger.info(
            "Classifier %s ready (%d labels, input %dx%d %s)",
            classifier.model_name,
            len(labels),
            classifier._input_size[0],
            classifier._input_size[1],
            classifier._layout,
        )
        return classifier

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def labels(self) -> list[str]:
        return list(self._labels)

    def classify(self, image: NDArray[np.uint8]) -> list[ClassificationResult]:
        tensor = to_input_tensor(
            image,
            size=self._input_size,
            mean=self._mean,
            std=self._std,
            layout=self._layout,
        )
        try:
            outputs = self._session.run(None, {self._input_name: tensor})
        except Exception as exc:
            raise InferenceError(f"Model {self._model_name} failed: {exc}") from exc

        scores = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if scores.size != len(self._labels):
            raise InferenceError(f"Model returned {scores.size} scores for {len(self._labels)} labels")
        if not np.all(np.isfinite(scores)):
            raise InferenceError(f"Model {self._model_name} returned non-finite scores")
        return self._scores_to_results(scores)

    def _scores_to_results(self, scores: NDArray[np.float32]) -> list[ClassificationResult]:
        """Convert raw scores to sorted top-K results."""
        probs = softmax(scores) if self._activation == "softmax" else scores
        probs = np.clip(probs, 0.0, 1.0)
        top_indices = np.argsort(probs, kind="stable")[::-1][: self._top_k]
        return [
            ClassificationResult(label=self._labels[int(idx)], confidence=float(probs[idx]))
            for idx in top_indices
        ]
