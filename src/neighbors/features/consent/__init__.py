"""Terms of service consent."""
