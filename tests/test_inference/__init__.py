"""Tests for detector_workflow.inference."""
