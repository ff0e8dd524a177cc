"""State-definition unit-test compiler."""
