"""Test helper utilities for the marketplace monitor tests."""

from .fake_marketplace import FakeMarketplace, load_fixture_marketplace, make_bid, make_job

__all__ = ["FakeMarketplace", "load_fixture_marketplace", "make_bid", "make_job"]
