"""Task-tracking API instrumented for Prometheus scraping."""
