"""Fundry — private equity-crowdfunding API (investment commitment engine)."""
