"""Game domain services.

Thin service classes over the models: persistence, auth, answer
validation, scoring, realtime fan-out, AI content generation and photo
handling. HTTP routes and socket handlers import from here, keeping
transport concerns separated from core game mechanics.
"""
