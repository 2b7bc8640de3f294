"""
Operator CLI for the recall scheduling core.

Entry point: recall.cli.main:main (installed as `recall`).
"""
