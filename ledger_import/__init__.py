"""Account suggestions and duplicate checks for imported ledger transactions."""
