"""Slack webhook inbound system.

Every request is routed (handshake short-circuit), signature-verified,
parsed and dispatched through one shared pipeline.
"""
