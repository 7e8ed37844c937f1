"""SiteLens: content analysis and risk scoring for a single web page."""

__version__ = "2.0.0"
