"""
Dance Scorer

Plays a reference dance video next to a live webcam, estimates the pose in
both streams and scores how closely the performer follows the reference.
"""

__version__ = "0.1.0"
