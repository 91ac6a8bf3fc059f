"""goldticker: gold and bank gold-product price ticker backend."""

__version__ = "0.1.0"
