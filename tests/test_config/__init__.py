"""Tests for detector_workflow.config."""
