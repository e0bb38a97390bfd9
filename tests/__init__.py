"""Linkcal Test Suite

This package contains all tests for the Linkcal calendar sync engine.

Test organization:
- unit/: Unit tests for individual modules
  - core/: Store, config, models, retry, token refresh
  - sync/: Window, validation, dedupe, diff, applier, engine, periodic
  - providers/: Google and Microsoft adapters against canned responses
  - forwarding/: Placeholder forwarding, cleanup, unlink
  - webhooks/: Push-notification dispatch
  - cli/: Command-line entry point
- integration/: Sync and forward flows across both providers

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/sync/

    # Excluding integration tests
    pytest -m "not integration"
"""
