"""Provably-fair raffle draws: commitments, draws, audit log and verification."""

__version__ = "0.1.0"
