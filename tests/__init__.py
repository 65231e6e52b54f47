"""
Test suite for the Detector Workflow.

The Custom Vision service is faked in memory; no test touches the network.
"""
