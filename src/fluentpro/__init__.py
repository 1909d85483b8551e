"""
FluentPro - Business English onboarding service.

Packages:
- fluentpro: Application shell (settings, web app, CLI)
- onboarding: Onboarding flow (phases, answers, backend collaborators)
"""

__version__ = "1.0.0"
