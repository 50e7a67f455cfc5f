"""Monitoring engine — endpoint tasks, retry policy, alert dispatcher."""
