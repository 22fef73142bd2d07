"""BombusCV: motion detection and video recording for research on bumblebees."""

__version__ = "0.3.0"
