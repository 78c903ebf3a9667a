# callsense/live/__init__.py
# ===========================
# Live Copilot — CallSense
#
# Responsibility:
#   - Battlecard preparation and in-memory live call sessions
