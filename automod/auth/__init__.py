"""Roles and capability checks for moderators and reviewers."""
