"""HTTP query surface over engine snapshots."""
