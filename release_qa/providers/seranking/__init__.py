"""Whole-site audits through the SE Ranking Website Audit API."""
