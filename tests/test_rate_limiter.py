"""Tests for the fixed-window rate limiter."""

from __future__ import annotations

from unittest.mock import patch

from src.services.rate_limiter import RateLimiter


class TestRateLimiter:
    def test_hit_until_budget_exhausted(self):
        limiter = RateLimiter({"anthropic": 2})
        with patch("src.services.rate_limiter.time.time", return_value=600.0):
            assert limiter.hit("anthropic") is True
            assert limiter.hit("anthropic") is True
            assert limiter.hit("anthropic") is False
            assert limiter.is_limited("anthropic") is True
            assert limiter.count("anthropic") == 2

    def test_default_limit_for_unknown_keys(self):
        limiter = RateLimiter({"google-ai": 15}, default_limit=3)
        assert limiter.limit_for("google-ai") == 15
        assert limiter.limit_for("203.0.113.9") == 3

    def test_new_window_resets_budget(self):
        limiter = RateLimiter(default_limit=1)
        with patch("src.services.rate_limiter.time.time", return_value=600.0):
            assert limiter.hit("deepseek") is True
            assert limiter.hit("deepseek") is False
        with patch("src.services.rate_limiter.time.time", return_value=660.0):
            assert limiter.is_limited("deepseek") is False
            assert limiter.hit("deepseek") is True

    def test_old_windows_are_pruned(self):
        limiter = RateLimiter()
        with patch("src.services.rate_limiter.time.time", return_value=0.0):
            limiter.hit("google-ai")
        with patch("src.services.rate_limiter.time.time", return_value=60.0 * 10):
            limiter.hit("google-ai")
        assert list(limiter._counts) == ["google-ai_10"]

    def test_keys_are_independent(self):
        limiter = RateLimiter(default_limit=1)
        with patch("src.services.rate_limiter.time.time", return_value=600.0):
            limiter.hit("a")
            assert limiter.is_limited("a") is True
            assert limiter.is_limited("b") is False

    def test_reset(self):
        limiter = RateLimiter(default_limit=1)
        limiter.hit("a")
        limiter.reset()
        assert limiter.count("a") == 0
