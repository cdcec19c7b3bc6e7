"""automod — auto-moderation rules and editorial review workflows."""

__version__ = "0.1.0"
