"""Shared configuration and helpers used by the client components."""
