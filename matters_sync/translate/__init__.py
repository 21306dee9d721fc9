"""Translators from the synced project layout to static site generators."""
