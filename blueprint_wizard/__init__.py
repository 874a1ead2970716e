"""Blueprint wizard - guided, data-driven onboarding to third-party products."""

__version__ = "0.1.0"
