"""
Tests for local dataset loading, label parsing and file utilities.
"""
