"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every bounded context:
- Structured logging setup
- Latency measurement
"""
