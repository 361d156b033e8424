"""Pull-request review metrics: collection, aggregation and reporting."""

__version__ = "0.1.0"
