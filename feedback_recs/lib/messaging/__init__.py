"""Dispatch channel: topic publisher, queue consumers and the delivery loop."""
