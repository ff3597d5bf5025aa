"""Acquisition phases, heatmap resolution and the read facade."""
