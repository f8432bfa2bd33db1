"""Asyncio reader adaptors and incremental codecs for common compression formats."""

__version__ = "0.1.0"
__all__ = ["buffer", "bufread", "bufwriter", "codecs", "zstd"]