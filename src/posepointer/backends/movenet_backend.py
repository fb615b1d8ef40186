import logging
import os
import cv2
import numpy as np
import tensorflow as tf
from typing import List, Optional

from ..config import MAX_SUBJECTS, MOVENET_LIGHTNING_PATH, MOVENET_THUNDER_PATH
from ..data_models import Landmark, Subject
from ..errors import ModelLoadError, OracleUnready
from .base import KEYPOINT_NAMES, PoseBackend

logger = logging.getLogger(__name__)

MODEL_PATHS = {
    "lightning": MOVENET_LIGHTNING_PATH,
    "thunder": MOVENET_THUNDER_PATH,
}


class MoveNetTFLiteBackend(PoseBackend):
    """
    MoveNet single-pose TFLite backend.

    Usage:
        backend = MoveNetTFLiteBackend(variant="lightning")
        subjects = backend.infer(frame_bgr)   # frame from OpenCV BGR
    Returns:
        a list with one Subject of 17 landmarks (pixel coords on the input
        frame), or an empty list when the output tensor is not understood.
    """

    def __init__(self, model_path: Optional[str] = None, variant: str = "lightning"):
        self.variant = variant
        self.model_path = model_path or MODEL_PATHS.get(variant, MOVENET_LIGHTNING_PATH)
        if not os.path.exists(self.model_path):
            raise ModelLoadError(f"MoveNet model not found at {self.model_path}")
        try:
            self.interpreter = tf.lite.Interpreter(model_path=self.model_path)
            self.interpreter.allocate_tensors()
        except Exception as e:
            raise ModelLoadError(f"Failed to load MoveNet {variant}: {e}") from e
        # cache input/output details; MoveNet has a single input [1, H, W, 3]
        self.inp = self.interpreter.get_input_details()[0]
        self.inp_index = self.inp["index"]
        self.inp_shape = self.inp["shape"]
        self.inp_dtype = self.inp["dtype"]
        self.inp_quant = self.inp.get("quantization", (0.0, 0))
        self.out_details = self.interpreter.get_output_details()
        logger.info("[MoveNet] Loaded %s from %s (input %s %s)",
                    variant, self.model_path, tuple(self.inp_shape), np.dtype(self.inp_dtype))

    def name(self) -> str:
        return f"MoveNet-{self.variant.capitalize()}"

    def is_ready(self) -> bool:
        return self.interpreter is not None

    def _preprocess(self, frame_bgr: np.ndarray) -> np.ndarray:
        """
        Resize + BGR->RGB + dtype handling according to the interpreter input.
        Returns a batched array ready for interpreter.set_tensor.
        """
        _, target_h, target_w, _ = [int(x) for x in self.inp_shape]
        img = cv2.resize(frame_bgr, (target_w, target_h), interpolation=cv2.INTER_LINEAR)
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

        if np.issubdtype(self.inp_dtype, np.floating):
            arr = img.astype(np.float32) / 255.0
        elif np.issubdtype(self.inp_dtype, np.integer):
            # quantized models carry (scale, zero_point); plain uint8 models take 0..255 directly
            scale, zero_point = self.inp_quant if self.inp_quant is not None else (0.0, 0)
            if scale:
                f = img.astype(np.float32) / 255.0
                arr = (np.round(f / scale) + zero_point).astype(self.inp_dtype)
            else:
                arr = img.astype(self.inp_dtype)
        else:
            arr = img.astype(np.float32) / 255.0

        return np.expand_dims(arr, axis=0)

    @staticmethod
    def _keypoint_array(raw: np.ndarray) -> Optional[np.ndarray]:
        # [1,1,17,3] or [1,17,3] -> (17,3) rows of (y, x, score)
        if raw.ndim == 4:
            return raw[0, 0, :, :]
        if raw.ndim == 3:
            return raw[0, :, :]
        flat = raw.reshape(-1, 3) if raw.size % 3 == 0 else None
        if flat is None or flat.shape[0] != len(KEYPOINT_NAMES):
            return None
        return flat

    def infer(self, frame_bgr: np.ndarray, max_subjects: int = MAX_SUBJECTS) -> List[Subject]:
        if self.interpreter is None:
            raise OracleUnready("MoveNet interpreter is closed")
        if max_subjects < 1:
            return []

        self.interpreter.set_tensor(self.inp_index, self._preprocess(frame_bgr))
        self.interpreter.invoke()
        raw = self.interpreter.get_tensor(self.out_details[0]["index"])

        kp_array = self._keypoint_array(raw)
        if kp_array is None:
            logger.warning("[MoveNet] Unexpected output shape %s", raw.shape)
            return []

        h_frame, w_frame = frame_bgr.shape[0], frame_bgr.shape[1]
        landmarks: List[Landmark] = []
        for i, name in enumerate(KEYPOINT_NAMES[: kp_array.shape[0]]):
            ny = float(np.clip(kp_array[i, 0], 0.0, 1.0))
            nx = float(np.clip(kp_array[i, 1], 0.0, 1.0))
            score = float(np.clip(kp_array[i, 2], 0.0, 1.0))
            # model coords are normalized to its input; map back onto the original frame
            landmarks.append(Landmark(name=name, x=nx * w_frame, y=ny * h_frame, score=score))
        return [Subject(landmarks=landmarks)]

    def close(self):
        # tf.lite.Interpreter has no explicit close; dropping the reference frees it
        self.interpreter = None
