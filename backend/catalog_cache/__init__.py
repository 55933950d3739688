"""
Product catalog cache and ranking aggregation layer.
"""
__version__ = "1.0.0"
