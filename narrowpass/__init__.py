"""Narrow passage detection and approach arc planning on elevation grid maps."""

__version__ = "0.1.0"
__all__ = [
    "messages",
    "geometry",
    "control_state",
    "gridmap",
    "passage_controller",
    "map_processing",
    "detection",
]