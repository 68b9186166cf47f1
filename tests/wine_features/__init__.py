"""
Tests for the Wine Feature Engine.

This package contains tests for:
- Feature registry and strategy inference
- Risk accumulation and manifestation
- Severity evolution and bottle aging
- Effect composition and display data
- Risk previews
- Quality and price derivation
- Engine orchestration, configuration and schemas
"""
