"""Tabbed navigation shell: tab state, page registry and sidebar navigation."""
