"""
Services Module

Business services with the hybrid development/production pattern.
Collaborators have an in-process implementation (development) and a
networked one (staging/production), selected by ENV_MODE.

Services:
    - maintenance: targeting rule store, rule evaluator and gate
    - identity: signed-in user lookup
    - cache: maintenance-status cache
"""
