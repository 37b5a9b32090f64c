"""Account, token and supertransaction building blocks."""
