"""Auto-moderation rules: definitions, validation, evaluation and enforcement."""
