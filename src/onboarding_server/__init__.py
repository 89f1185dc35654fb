"""onboarding_server — FastAPI REST API for questionnaire sessions.

Hosts anonymous sessions that the ``onboarding_flow`` client autosaves to,
attaches them to accounts after login, and serves user profiles and the
questionnaire definition.
"""
