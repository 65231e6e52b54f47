"""Tests for detector_workflow.export."""
