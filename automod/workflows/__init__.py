"""Editorial approval workflows for proposed content changes."""
