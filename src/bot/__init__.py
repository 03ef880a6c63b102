"""Conversation pipeline: aggregation, orchestration, scheduling, transport."""
