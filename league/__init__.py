"""
League manager API.

Users register with email and birthdate, form teams, and enter them into
tournaments whose admins schedule fixtures and score matches live.
"""
