"""
Embedding Generation Module

Converts cropped face images to unit-normalized descriptors using FaceNet,
the face_recognition library, or DeepFace.
"""

import logging
from typing import Any, Dict, Optional

import cv2
import face_recognition
import numpy as np
import torch
from deepface import DeepFace
from facenet_pytorch import InceptionResnetV1, fixed_image_standardization
from PIL import Image

from .descriptor import Descriptor
from .exceptions import ExtractionFailed

logger = logging.getLogger(__name__)


class EmbeddingGenerator:
    """Generate face descriptors using various models."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize embedding generator.

        Args:
            config: Configuration dictionary with embedding settings
        """
        self.config = config.get('embedding', {}) or {}
        self.model_name = self.config.get('model', 'facenet')
        self.deepface_model = self.config.get('deepface_model', 'Facenet512')
        self.input_size = int(self.config.get('input_size', 160))

        self.model = None
        self.device = torch.device('cuda' if torch.cuda.is_available() and
                                   (config.get('performance', {}) or {}).get('use_gpu', False)
                                   else 'cpu')

        self._initialize_model()
        logger.info(f"Embedding generator initialized with model: {self.model_name}")

    def _initialize_model(self):
        """Initialize the selected embedding model."""
        try:
            if self.model_name == 'facenet':
                self.model = InceptionResnetV1(pretrained='vggface2').eval().to(self.device)
                logger.info("FaceNet model loaded successfully")
            elif self.model_name == 'face_recognition':
                # face_recognition library uses dlib's ResNet model
                logger.info("Using face_recognition library (dlib ResNet)")
            elif self.model_name == 'deepface':
                DeepFace.build_model(self.deepface_model)
                logger.info(f"DeepFace model {self.deepface_model} loaded successfully")
            else:
                raise ValueError(f"Unsupported embedding model: {self.model_name}")

        except Exception as e:
            logger.error(f"Failed to initialize embedding model: {e}")
            self.model_name = 'face_recognition'
            self.model = None
            logger.warning("Falling back to face_recognition library")

    def embed(self, face_image: np.ndarray) -> Descriptor:
        """
        Generate a unit-normalized descriptor from a face crop.

        Args:
            face_image: Cropped face image (BGR, uint8)

        Returns:
            Descriptor

        Raises:
            ExtractionFailed: If the crop could not be processed
        """
        if face_image is None or face_image.size == 0 or face_image.ndim != 3:
            raise ExtractionFailed("Empty or malformed face crop")

        try:
            if self.model_name == 'facenet':
                raw = self._generate_facenet_embedding(face_image)
            elif self.model_name == 'deepface':
                raw = self._generate_deepface_embedding(face_image)
            else:
                raw = self._generate_face_recognition_embedding(face_image)
        except ExtractionFailed:
            raise
        except Exception as e:
            logger.warning(f"Embedding generation failed: {e}")
            raise ExtractionFailed(str(e)) from e

        if raw is None or raw.size == 0 or not np.all(np.isfinite(raw)):
            raise ExtractionFailed(f"{self.model_name} produced no usable embedding")

        return Descriptor.normalized(raw)

    def _generate_facenet_embedding(self, face_image: np.ndarray) -> np.ndarray:
        rgb_image = cv2.cvtColor(face_image, cv2.COLOR_BGR2RGB)
        pil_image = Image.fromarray(rgb_image).resize((self.input_size, self.input_size), Image.BILINEAR)

        face_tensor = torch.from_numpy(np.asarray(pil_image, dtype=np.float32)).permute(2, 0, 1)
        face_tensor = fixed_image_standardization(face_tensor).unsqueeze(0).to(self.device)

        with torch.no_grad():
            embedding = self.model(face_tensor)
        return embedding.cpu().numpy().flatten()

    def _generate_face_recognition_embedding(self, face_image: np.ndarray) -> Optional[np.ndarray]:
        rgb_image = cv2.cvtColor(face_image, cv2.COLOR_BGR2RGB)
        height, width = rgb_image.shape[:2]

        # The crop is the face: use the whole image as the known location
        encodings = face_recognition.face_encodings(
            rgb_image, known_face_locations=[(0, width, height, 0)]
        )
        if len(encodings) == 0:
            return None
        return np.asarray(encodings[0])

    def _generate_deepface_embedding(self, face_image: np.ndarray) -> Optional[np.ndarray]:
        representations = DeepFace.represent(
            img_path=face_image,
            model_name=self.deepface_model,
            detector_backend='skip',
            enforce_detection=False
        )
        if not representations:
            return None
        return np.asarray(representations[0]['embedding'], dtype=np.float32)
