"""Crawlers, core builder and the services coordinating them."""
