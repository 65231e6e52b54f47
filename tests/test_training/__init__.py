"""Tests for detector_workflow.training."""
