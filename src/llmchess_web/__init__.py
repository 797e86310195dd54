"""
LLM Chess Web package.

Components:
- move_interpreter: raw model text -> one legal move (or AmbiguousOrIllegalMove)
- orchestrator: position owner; human moves, AI turns with random-move fallback, stale-reply guard
- move_client/llm_client: outbound move request and the streaming model endpoint behind it
- referee: python-chess helpers (status text, termination reason, PGN)
- server/cli: Flask API and terminal entry point
"""
# Package exports are intentionally minimal; import modules directly as needed.
