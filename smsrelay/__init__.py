"""SMS relay API: store submitted messages and relay them through an SMS gateway."""
