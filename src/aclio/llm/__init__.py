"""LLM clients: OpenAI-compatible (Groq by default) and an offline demo client."""
