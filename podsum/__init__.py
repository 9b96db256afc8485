"""
podsum: podcast summarization pipeline.

Audio episodes go through acquisition, metadata probing, normalization,
speech-to-text and language-model summarization, one job at a time.
"""

__version__ = "0.1.0"
