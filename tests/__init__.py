"""Tests for capability-orchestrator."""
