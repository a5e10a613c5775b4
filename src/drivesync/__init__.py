"""drivesync - one-way synchronization between a local folder and a cloud drive."""

__version__ = "0.3.0"
