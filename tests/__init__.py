"""
Translation Orchestrator - Test Suite
=====================================
Unit and integration tests for the orchestration engine.
Run with: pytest tests/ -v
"""
