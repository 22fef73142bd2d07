from bombuscv.detection.motion import MotionDetector, MotionVerdict

__all__ = ["MotionDetector", "MotionVerdict"]
