"""LiveMetro commute pattern and smart notification engine."""

__version__ = "1.0.0"
