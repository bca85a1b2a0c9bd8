"""Business logic for the messaging core. Services commit; routes publish."""
