"""Hand landmark detection with MediaPipe Hands."""

import logging

import cv2
import mediapipe as mp

from handcloud.util import hand_keypoints

logger = logging.getLogger(__name__)


class HandDetector:
    """
    Finds (at most) one hand in BGR images and returns its 21 landmarks.

    Attributes:
        mode (bool): Static image mode (no tracking between frames).
        max_hands (int): Maximum number of hands to detect.
        model_complexity (int): 0 for the lite model, 1 for the full one.
        detection_con (float): Minimum detection confidence threshold.
        track_con (float): Minimum tracking confidence threshold.
    """

    def __init__(
        self,
        mode=False,
        *,
        max_hands=1,
        model_complexity=0,
        detection_con=0.5,
        track_con=0.5,
    ):
        self.mode = mode
        self.max_hands = max_hands
        self.model_complexity = model_complexity
        self.detection_con = detection_con
        self.track_con = track_con

        # Initialize MediaPipe Hands
        self.mp_hands = mp.solutions.hands
        self.hands = self.mp_hands.Hands(
            static_image_mode=self.mode,
            max_num_hands=self.max_hands,
            model_complexity=self.model_complexity,
            min_detection_confidence=self.detection_con,
            min_tracking_confidence=self.track_con,
        )
        logger.info("MediaPipe Hands initialized")

    def find_hands(self, img):
        """
        Runs the hand landmark model on the provided image.

        Args:
            img: The input (BGR) image.

        Returns:
            The MediaPipe hand detection results
        """
        img_rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        return self.hands.process(img_rgb)

    def detect(self, img):
        """
        The first detected hand's keypoints as a ``(21, 3)`` array, or ``None``.
        """
        hand_detection = self.find_hands(img)
        if not hand_detection.multi_hand_landmarks:
            return None
        return hand_keypoints(hand_detection.multi_hand_landmarks[0])

    def close(self):
        self.hands.close()
