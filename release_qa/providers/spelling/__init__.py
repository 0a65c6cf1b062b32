"""Spelling and grammar checks through LanguageTool."""
