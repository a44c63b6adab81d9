"""Focals quickstart ability service."""
