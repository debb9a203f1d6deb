"""Core domain logic for notehub-dfu."""
