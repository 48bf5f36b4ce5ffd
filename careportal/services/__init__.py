"""Domain services for conversations, messages and read state."""
