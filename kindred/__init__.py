"""kindred - conversation memory and summarization for companion chat."""

__version__ = "0.1.0"
__logo__ = "🧠"
