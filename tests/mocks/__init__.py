"""Test doubles for the network side of regionfetch."""
