"""Smoke runner that drives a live pingwatch server over HTTP."""
