"""Read-side services: stores over the snapshots and timeline queries."""
