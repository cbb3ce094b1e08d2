"""PlacementSync: snapshot-based attribute propagation for placement objects."""

__version__ = "0.1.0"
