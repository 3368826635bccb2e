"""Tubely media-upload backend."""
