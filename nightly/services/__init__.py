"""Build, package, merge and publish services."""
