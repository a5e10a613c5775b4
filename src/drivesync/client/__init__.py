"""Client side of drivesync: drive API, authorisation, filesystem and sync."""
