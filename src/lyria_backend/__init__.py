"""Long-form music generation backend built on Vertex AI Lyria."""

__version__ = "0.1.0"
