"""Vote-milestone workflow core: status policy, errors, and domain events."""
