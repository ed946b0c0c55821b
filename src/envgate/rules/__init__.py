"""Packaged rule registries."""
