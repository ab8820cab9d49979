"""onboarding_server — FastAPI REST API for the onboarding flow engine.

Hosts one FlowController per user in memory and exposes the conversation
as request/response steps: each call returns the messages and affordances
the presenter collected while handling it.
"""
