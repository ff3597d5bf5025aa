"""Shared service frameworks."""
