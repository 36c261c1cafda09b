"""crategallery – near-duplicate detection for record shop photo galleries."""

__version__ = "0.1.0"
