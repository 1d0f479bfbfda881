"""procview - process dashboard with a local language-model query box."""

__version__ = "0.1.0"
