"""Scheduled sitemap-wide Lighthouse performance auditor."""
