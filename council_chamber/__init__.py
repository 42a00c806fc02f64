"""Council Chamber: sequential multi-agent deliberation over Gemini models."""

__version__ = "0.1.0"
