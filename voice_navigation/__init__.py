"""
Voice Navigation Backend
========================
Multilingual voice navigation for an artisan marketplace.

Features:
- English and Hindi command matching with typo tolerance
- Role-aware route resolution and access checks
- Confirmation-gated navigation, history and "go back"
- Spoken feedback, retry prompts, tutorials and hints

Tech Stack:
- FastAPI (async backend)
- rapidfuzz (fuzzy matching)
- Groq API (LLM intent fallback)
- edge-tts (TTS)
"""

__version__ = "1.0.0"
__author__ = "Robo-Hack Team"
