"""OpenHeart Reviews - privacy-first review publishing site."""

__version__ = "0.1.0"
