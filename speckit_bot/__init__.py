"""speckit-bot: signed Slack webhook gateway for the Spec Kit agent."""

__version__ = "0.1.0"
