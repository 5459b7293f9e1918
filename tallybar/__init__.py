"""Draw targets, multi-bar layout, progress-tracking iterators and human-readable formatting."""

__version__ = "0.1.0"

__all__ = ["draw_target", "format", "iter", "multi", "multi_state"]