"""Tests for detector_workflow.client."""
