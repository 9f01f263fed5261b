"""
Gemini Relay package.

Provides:
- Round-robin dispatch of generateContent calls across several API keys
- Normalization of Gemini responses into image / text / empty / error outcomes
- FastAPI surface for multipart prompt + image requests
"""

__version__ = "0.1.0"
