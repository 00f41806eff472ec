"""Provision a single OpenStack server and hand it to a bootstrap command."""
