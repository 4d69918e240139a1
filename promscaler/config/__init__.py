"""Bundled configuration resources for PromScaler."""
