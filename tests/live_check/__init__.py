"""
Live Check Tests Package
========================
Test suite for the incremental checking engine.

Run all tests: python3 -m pytest tests/live_check/ -v
Run specific: python3 -m pytest tests/live_check/test_differ.py -v
"""

__version__ = "1.0.0"
