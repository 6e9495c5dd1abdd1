"""Domain entities and the message lifecycle state machine."""
