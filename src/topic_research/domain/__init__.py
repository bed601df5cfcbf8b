"""Pure domain helpers."""
