"""
WSGI / Flask CLI entry point.

Usage:
    flask --app wsgi run
    flask --app wsgi grant-role <profile_id> admin --email you@example.com
    flask --app wsgi issue-token <profile_id>
"""

from okrops import create_app

app = create_app()
