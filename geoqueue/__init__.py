"""
GeoQueue - offline-tolerant location delivery.

Captures GPS fixes, buffers them in a durable local queue and flushes
them to the tracking backend whenever it is reachable.
"""

__version__ = "0.1.0"
