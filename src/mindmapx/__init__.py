"""mindmapx - live mind-map view of a Markdown outline."""

__version__ = "0.1.0"
