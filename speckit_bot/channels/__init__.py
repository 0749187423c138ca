"""Outbound Slack channels."""
