"""Mesh network layer building blocks: frames, commands, routing, route discovery, groups, NMEA."""

__version__ = "0.1.0"
__all__ = [
    "commands",
    "core",
    "discovery",
    "frame",
    "groups",
    "nmea",
    "primitives",
    "routing",
]