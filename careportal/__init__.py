"""Care Portal direct-messaging API."""
