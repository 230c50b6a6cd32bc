"""Bilingo: realtime bilingual translation session coordinator."""

__version__ = "0.1.0"
