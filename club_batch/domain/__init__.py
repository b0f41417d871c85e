"""club_batch.domain -- pure batch DTOs."""
