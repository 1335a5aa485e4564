"""
Question Generation Pipeline
generation/

Client side:
1. Generation Client  — truncate, call the service, retry with linear backoff
2. Validator          — all-or-nothing structural check of returned questions
3. Audit Log          — one best-effort row per generate() call
4. Estimation         — advisory token / cost figures for display

Service side:
5. Question Generator — prompt GPT, parse JSON, keep well-formed questions
"""
