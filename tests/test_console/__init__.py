"""Tests for detector_workflow.console."""
