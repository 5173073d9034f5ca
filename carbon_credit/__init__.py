"""Carbon credit claim and borrow-request coordination."""
