"""Extraction, rendering and layout pipeline."""
