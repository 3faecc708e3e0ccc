"""Map-side of the live tracking view: substrate protocol, icons, reconciliation."""
